"""First-boot (and re-runnable) deployment procedure for the API instance.

Two scripts are rendered from ``user_data/``: ``deploy-api`` runs as root and
does the privileged steps, then hands over to ``deploy-api-app`` which runs as
the application account for everything touching the credential, the source
tree and the repository's own build script.
"""
import re
from pathlib import Path
from string import Template

from attrs import asdict, define, field
from attrs.validators import instance_of, matches_re
from aws_cdk import aws_ec2 as ec2

import common.constants as constants
from common.environments import EnvironmentConfig

USER_DATA_DIR = Path(__file__).resolve().parent / "user_data"

_SHELL_SAFE = re.compile(r"^[A-Za-z0-9_./:@+-]+$")
_BRANCH_NAME = re.compile(r"^[A-Za-z0-9._/-]+$")


class ScriptTemplate(Template):
    delimiter = "@@"


def _shell_safe():
    return matches_re(_SHELL_SAFE)


@define(slots=True, frozen=True, kw_only=True)
class BootstrapConfig:
    env_name: str = field(validator=_shell_safe())
    environment_label: str = field(validator=_shell_safe())
    default_branch: str = field(validator=matches_re(_BRANCH_NAME))
    # May be an unresolved CDK token, substituted at synth time.
    region: str = field(validator=instance_of(str))
    parameter_prefix: str = field(validator=_shell_safe())
    repo_url: str = field(default=constants.API_REPOSITORY_URL, validator=_shell_safe())
    secret_id: str = field(default=constants.GITHUB_TOKEN_SECRET_NAME, validator=_shell_safe())
    app_user: str = field(default=constants.APP_USER, validator=_shell_safe())
    app_home: str = field(default=constants.APP_HOME, validator=_shell_safe())
    app_dir: str = field(default=constants.APP_DIR, validator=_shell_safe())
    node_major_version: str = field(default=constants.NODE_MAJOR_VERSION, validator=_shell_safe())
    deploy_script: str = field(default=constants.REPO_DEPLOY_SCRIPT, validator=_shell_safe())
    log_file: str = field(default=constants.DEPLOY_LOG_FILE, validator=_shell_safe())
    deploy_script_path: str = field(default=constants.DEPLOY_SCRIPT_PATH, validator=_shell_safe())
    app_stage_script: str = field(default=constants.APP_STAGE_SCRIPT_PATH, validator=_shell_safe())

    @classmethod
    def for_environment(cls, env_config: EnvironmentConfig, region: str) -> "BootstrapConfig":
        return cls(
            env_name=env_config.name,
            environment_label=env_config.label,
            default_branch=env_config.default_branch,
            region=region,
            parameter_prefix=env_config.parameter_prefix(constants.COMPONENT_API),
        )


def read_user_data_template(filename: str) -> ScriptTemplate:
    return ScriptTemplate((USER_DATA_DIR / filename).read_text())


def render_deploy_script(config: BootstrapConfig) -> str:
    """Root half: OS packages, runtime, app directory, hand-over, boot registration."""
    return read_user_data_template("deploy_api.sh").substitute(asdict(config))


def render_app_script(config: BootstrapConfig) -> str:
    """App-account half: credential, branch, source sync, build delegation."""
    return read_user_data_template("deploy_api_app.sh").substitute(asdict(config))


def _install_script(path: str, body: str, marker: str) -> list[str]:
    return [
        f"cat > {path} <<'{marker}'\n{body.rstrip()}\n{marker}",
        f"chmod 755 {path}",
    ]


def build_user_data(config: BootstrapConfig) -> ec2.UserData:
    """User data installing both scripts and running the deploy once on first boot."""
    user_data = ec2.UserData.for_linux()
    user_data.add_commands(
        "set -euo pipefail",
        *_install_script(config.app_stage_script, render_app_script(config), "DEPLOY_API_APP"),
        *_install_script(config.deploy_script_path, render_deploy_script(config), "DEPLOY_API"),
        config.deploy_script_path,
    )
    return user_data
