"""GitHub App authentication.

Exchanges the long-lived app identity (app ID + private key) for a short-lived
installation token scoped to the one target repository, and hands out a
PyGithub client built on that token.

Resolution order inside get_authenticated_client():
  1. Validate credentials locally (no network before this passes)
  2. Resolve the app's own login (best effort, None on failure)
  3. Resolve the installation for <owner>/<name>
  4. Exchange the installation for an access token

Clients are cached per installation and rebuilt once the token expires or
after invalidate() (called when an API call reports bad credentials).
"""

from __future__ import annotations

import base64
import binascii
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone

import requests
from github import Auth, BadCredentialsException, Github, GithubException, GithubIntegration

from toolpipe_core.errors import AuthError, ConfigError
from toolpipe_core.models import AppCredential, InstallationToken

logger = logging.getLogger(__name__)

_PEM_PREFIX = "-----BEGIN"


def load_app_credential(config: dict) -> AppCredential:
    """Build the AppCredential from config, raising ConfigError when unusable.

    The private key is read from ``GITHUB_PRIVATE_KEY_BASE64`` (base64 of the
    PEM file, the form used in CI secrets) or, failing that, a raw PEM in
    ``GITHUB_PRIVATE_KEY``.
    """
    app_id = config.get("github_app_id")
    encoded = config.get("github_private_key_base64")
    raw_pem = config.get("github_private_key")
    if not app_id or not (encoded or raw_pem):
        logger.error(
            "GitHub App credentials missing (GITHUB_APP_ID set: %s, private key set: %s)",
            bool(app_id),
            bool(encoded or raw_pem),
        )
        raise ConfigError("Server configuration error: GitHub App credentials missing.")

    if encoded:
        try:
            pem = base64.b64decode(encoded).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError, ValueError) as e:
            raise ConfigError(f"Failed to decode private key from base64: {e}") from e
    else:
        pem = raw_pem.replace("\\n", "\n")

    if not pem.strip().startswith(_PEM_PREFIX):
        raise ConfigError("Decoded private key does not appear to be in PEM format.")
    return AppCredential(app_id=str(app_id), private_key_pem=pem.strip() + "\n")


@dataclass(frozen=True)
class AuthenticatedClient:
    github: Github
    repo: object  # github.Repository.Repository, fetched lazily
    app_login: str | None
    token: InstallationToken


def _app_login(integration: GithubIntegration) -> str | None:
    """Return the login the app comments under (``<slug>[bot]``), or None."""
    try:
        app = integration.get_app()
    except (GithubException, requests.RequestException) as e:
        logger.warning("Could not resolve GitHub App identity; own comments will not be detected: %s", e)
        return None
    if app.slug:
        return f"{app.slug}[bot]"
    if app.name:
        return "-".join(app.name.lower().split()) + "[bot]"
    return None


class CredentialBroker:
    """Hands out installation-scoped clients for one target repository."""

    def __init__(self, config: dict):
        self._config = config
        self._owner = config["repo_owner"]
        self._repo_name = config["repo_name"]
        self._timeout = config.get("request_timeout", 15)
        self._lock = threading.Lock()
        self._clients: dict[int, AuthenticatedClient] = {}
        self._installation_id: int | None = None

    @property
    def repo_full_name(self) -> str:
        return f"{self._owner}/{self._repo_name}"

    def get_authenticated_client(self) -> AuthenticatedClient:
        credential = load_app_credential(self._config)
        with self._lock:
            cached = self._clients.get(self._installation_id) if self._installation_id is not None else None
        if cached is not None and not cached.token.is_expired():
            return cached
        if cached is not None:
            logger.info("Installation token expired; re-authenticating.")

        # No lock is held across the network calls below.
        client = self._authenticate(credential)
        with self._lock:
            self._installation_id = client.token.installation_id
            self._clients = {client.token.installation_id: client}
        return client

    def invalidate(self) -> None:
        with self._lock:
            self._clients = {}
            self._installation_id = None

    @contextmanager
    def guard_auth(self):
        """Invalidate the cached client when GitHub rejects its credentials."""
        try:
            yield
        except BadCredentialsException as e:
            logger.warning("GitHub rejected the installation token; dropping cached client.")
            self.invalidate()
            raise AuthError("GitHub App authentication failed: bad credentials.") from e

    def _authenticate(self, credential: AppCredential) -> AuthenticatedClient:
        integration = GithubIntegration(
            auth=Auth.AppAuth(credential.app_id, credential.private_key_pem),
            timeout=self._timeout,
        )
        app_login = _app_login(integration)

        try:
            installation = integration.get_repo_installation(self._owner, self._repo_name)
        except GithubException as e:
            logger.error("Failed to get repo installation for %s. Status: %s", self.repo_full_name, e.status)
            raise AuthError(f"installation not found for {self.repo_full_name}") from e
        except requests.RequestException as e:
            raise AuthError(f"Timed out resolving installation for {self.repo_full_name}: {e}") from e
        if not getattr(installation, "id", None):
            raise AuthError(f"installation not found for {self.repo_full_name}")

        try:
            authorization = integration.get_access_token(installation.id)
        except (GithubException, requests.RequestException) as e:
            raise AuthError(f"GitHub App authentication failed: {e}") from e

        token = InstallationToken(
            token=authorization.token,
            installation_id=installation.id,
            obtained_at=datetime.now(timezone.utc),
            expires_at=authorization.expires_at,
        )
        github = Github(auth=Auth.Token(token.token), timeout=self._timeout)
        repo = github.get_repo(self.repo_full_name, lazy=True)
        logger.info(
            "GitHub App authentication successful for %s (installation %d).", self.repo_full_name, installation.id
        )
        return AuthenticatedClient(github=github, repo=repo, app_login=app_login, token=token)
