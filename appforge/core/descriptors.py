"""Deployment descriptors written next to the generated artifact.

Two files: a container build file serving the static artifact with nginx on
port 8080, and a CI workflow that builds the image tagged with the slug and
deploys it as a service named by the slug.  Both take the ``AppSlug`` as
input; neither recomputes a name.
"""

from __future__ import annotations

from typing import Any

import yaml

from appforge.models.provisioning import AppSlug, GeneratedArtifact

MARKUP_FILE = "index.html"
STYLE_FILE = "styles.css"
SCRIPT_FILE = "script.js"
DOCKERFILE = "Dockerfile"
WORKFLOW_DIR = ".github/workflows"

_DOCKERFILE_TEMPLATE = """\
FROM nginx:alpine

# Cloud Run sends traffic to $PORT, 8080 by default
ENV PORT=8080
RUN sed -i 's/listen       80;/listen       8080;/' /etc/nginx/conf.d/default.conf
EXPOSE 8080

COPY {markup} /usr/share/nginx/html/{markup}
COPY {style} /usr/share/nginx/html/{style}
COPY {script} /usr/share/nginx/html/{script}
"""


def artifact_files(artifact: GeneratedArtifact) -> dict[str, str]:
    """Map artifact fields to the file names the page and Dockerfile expect."""
    return {
        MARKUP_FILE: artifact.markup,
        STYLE_FILE: artifact.style,
        SCRIPT_FILE: artifact.script,
    }


def render_dockerfile() -> str:
    return _DOCKERFILE_TEMPLATE.format(
        markup=MARKUP_FILE, style=STYLE_FILE, script=SCRIPT_FILE
    )


def workflow_path(workflow_file: str) -> str:
    """Repository-relative path of the workflow descriptor."""
    return f"{WORKFLOW_DIR}/{workflow_file}"


def image_reference(slug: AppSlug, project_id: str) -> str:
    """Container image tag for the slug."""
    return f"gcr.io/{project_id}/{slug.name}"


def build_deploy_workflow(
    slug: AppSlug,
    *,
    project_id: str,
    region: str,
    secret_name: str,
    branch: str = "main",
    trigger_mode: str = "dispatch",
) -> dict[str, Any]:
    """Build the CI workflow as a plain mapping.

    ``trigger_mode="dispatch"`` runs only on explicit workflow dispatch, so
    pushing the workflow does not start a second deploy; ``"push"`` runs on
    every push to *branch*.
    """
    if trigger_mode == "push":
        triggers: dict[str, Any] = {
            "push": {"branches": [branch]},
            "workflow_dispatch": None,
        }
    else:
        triggers = {"workflow_dispatch": None}

    return {
        "name": "Deploy to Cloud Run",
        "on": triggers,
        "env": {
            "APP_SLUG": slug.name,
            "PROJECT_ID": project_id,
            "REGION": region,
            "IMAGE": image_reference(slug, project_id),
        },
        "jobs": {
            "deploy": {
                "runs-on": "ubuntu-latest",
                "steps": [
                    {"uses": "actions/checkout@v4"},
                    {
                        "name": "Authenticate to Google Cloud",
                        "uses": "google-github-actions/auth@v2",
                        "with": {
                            "credentials_json": f"${{{{ secrets.{secret_name} }}}}",
                        },
                    },
                    {"uses": "google-github-actions/setup-gcloud@v2"},
                    {
                        "name": "Build & Push Docker image",
                        "run": 'gcloud builds submit --tag "$IMAGE"',
                    },
                    {
                        "name": "Deploy to Cloud Run",
                        "run": (
                            'gcloud run deploy "$APP_SLUG" '
                            '--image "$IMAGE" '
                            "--platform managed "
                            '--region "$REGION" '
                            "--allow-unauthenticated"
                        ),
                    },
                ],
            }
        },
    }


def render_deploy_workflow(slug: AppSlug, **kwargs: Any) -> str:
    """YAML text of ``build_deploy_workflow``."""
    return yaml.safe_dump(
        build_deploy_workflow(slug, **kwargs),
        sort_keys=False,
        default_flow_style=False,
    )
