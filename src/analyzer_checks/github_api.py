"""Utility functions to help interface with the GitHub checks API."""

import logging
import time
from datetime import datetime
from pathlib import Path

import jwt
from pydantic import BaseModel, SecretStr, model_validator
from requests import Response, patch, post

from analyzer_checks.errors import ConfigurationError
from analyzer_checks.models import CheckRunConclusion, CheckRunOutput

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"


def _get_jwt_headers(jwt_str: str, accept_type: str) -> dict[str, str]:
    return {
        "Accept": f"{accept_type}",
        "Authorization": f"Bearer {jwt_str}",
        "X-GitHub-Api-Version": "2022-11-28",
    }


def _gen_github_timestamp() -> str:
    """Generate a timestamp for the current moment in the GitHub-expected format."""
    return datetime.now().astimezone().replace(microsecond=0).isoformat()


class AppCredentials(BaseModel):
    """Credentials of a GitHub App installation with ``checks:write`` permission.

    The private key is given either inline or as a path to a PEM file. If a client
    ID is configured it is used as the JWT issuer, otherwise the App ID is.
    """

    app_id: str | None = None
    client_id: str | None = None
    installation_id: str
    private_key: SecretStr | None = None
    private_key_path: Path | None = None
    api_url: str = DEFAULT_API_URL

    @model_validator(mode="after")
    def _check_complete(self) -> "AppCredentials":
        if not (self.app_id or self.client_id):
            msg = "Either an App ID or a client ID is required."
            raise ValueError(msg)
        if not (self.private_key or self.private_key_path):
            msg = "Either a private key or a path to a PEM file is required."
            raise ValueError(msg)
        return self

    def read_private_key(self) -> bytes:
        """Get the PEM encoded private key of the app."""
        if self.private_key is not None:
            return self.private_key.get_secret_value().encode()
        if self.private_key_path is None or not self.private_key_path.is_file():
            msg = f"Private key file {self.private_key_path} not found."
            raise ConfigurationError(msg)
        return self.private_key_path.read_bytes()


class AppInstallation:
    """Local installation of a GitHub app, identified by App ID and Installation ID."""

    def __init__(self, credentials: AppCredentials) -> None:
        """Create a handle for the app installation described by the credentials."""
        self.credentials = credentials

    def _generate_app_jwt(self, ttl_seconds: int = 600) -> str:
        priv_key = jwt.jwk_from_pem(self.credentials.read_private_key())
        now = int(time.time())
        jwt_payload = {
            # backdated to allow for clock drift, as recommended by GitHub
            "iat": now - 60,
            "exp": now + ttl_seconds,
            "iss": self.credentials.client_id or self.credentials.app_id,
        }
        jwt_instance = jwt.JWT()
        return str(jwt_instance.encode(jwt_payload, priv_key, alg="RS256"))

    def authenticate(self, timeout: float = 10) -> str:
        """Authenticate this App installation with GitHub and get an access token.

        :param timeout: request timeout in seconds, optional, defaults to 10
        :return: the GitHub App installation access token
        :raises HTTPError: in case GitHub refuses to issue a token
        """
        app_jwt: str = self._generate_app_jwt()
        url: str = (
            f"{self.credentials.api_url}/app/installations/"
            f"{self.credentials.installation_id}/access_tokens"
        )
        headers = _get_jwt_headers(app_jwt, "application/vnd.github+json")
        response: Response = post(url, headers=headers, timeout=timeout)
        response.raise_for_status()
        logger.debug(
            "Obtained access token for installation %s",
            self.credentials.installation_id,
        )
        return str(response.json().get("token"))


class GitHubChecks:
    """Client for the check runs endpoints, authenticated with an access token."""

    def __init__(
        self,
        access_token: str,
        api_url: str = DEFAULT_API_URL,
        timeout: float | None = None,
    ) -> None:
        """Initialize the headers for usage with the Checks API.

        :param access_token: installation access token with checks write access
        :param api_url: base URL of the REST API, for GitHub Enterprise servers
        :param timeout: request timeout in seconds, None waits indefinitely
        """
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.headers: dict[str, str] = _get_jwt_headers(
            access_token,
            "application/vnd.github+json",
        )

    def _check_runs_url(self, owner: str, repo: str) -> str:
        return f"{self.api_url}/repos/{owner}/{repo}/check-runs"

    def create_check_run(
        self,
        owner: str,
        repo: str,
        head_sha: str,
        name: str,
    ) -> int:
        """Start a check run in the ``in_progress`` state.

        :param owner: owner of the repository, user or organization
        :param repo: name of the repository
        :param head_sha: the sha revision being evaluated by this check run
        :param name: name of the check, shown on pull requests
        :return: the id of the created check run
        :raises HTTPError: in case the GitHub API could not start the check run
        """
        json_payload: dict[str, str] = {
            "name": name,
            "head_sha": head_sha,
            "status": "in_progress",
            "started_at": _gen_github_timestamp(),
        }
        response: Response = post(
            self._check_runs_url(owner, repo),
            json=json_payload,
            headers=self.headers,
            timeout=self.timeout,
        )
        response.raise_for_status()
        return int(response.json()["id"])

    def update_check_run(
        self,
        owner: str,
        repo: str,
        check_run_id: int,
        output: CheckRunOutput,
        conclusion: CheckRunConclusion,
    ) -> None:
        """Post output to a check run, completing it with the given conclusion.

        Subsequent updates of a completed check run append their annotations.

        :param output: the results of this check run, e.g. for annotating a PR
        :param conclusion: the overall success to be fed back, e.g. for PR approval
        :raises HTTPError: in case the GitHub API rejected the update
        """
        json_payload = {
            "output": output.to_payload(),
            "conclusion": conclusion.value,
            "completed_at": _gen_github_timestamp(),
        }
        response: Response = patch(
            f"{self._check_runs_url(owner, repo)}/{check_run_id}",
            json=json_payload,
            headers=self.headers,
            timeout=self.timeout,
        )
        response.raise_for_status()
