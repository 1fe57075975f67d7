"""
Authentication module — certificate-based app-only and delegated device-code auth.
Uses MSAL for token acquisition against the Microsoft identity platform.
"""

from __future__ import annotations

import base64
import getpass
import logging
import os
from typing import Optional

import msal
from cryptography.hazmat.primitives.hashes import SHA1
from cryptography.hazmat.primitives.serialization import Encoding, NoEncryption, PrivateFormat, pkcs12

from ..config import AuthConfig, REQUIRED_PERMISSIONS

logger = logging.getLogger("tenant_reports.auth")

APP_SCOPES = ["https://graph.microsoft.com/.default"]

CERT_PASSWORD_ENV = "TENANT_REPORTS_CERT_PASSWORD"


class AuthenticationError(Exception):
    """Raised when authentication fails."""
    pass


def load_certificate(cert_path: str, password: str) -> tuple[str, str]:
    """
    Read a base64-encoded PFX file.
    Returns (private key PEM, SHA1 thumbprint hex).
    """
    try:
        with open(cert_path, "r", encoding="utf-8") as f:
            cert_bytes = base64.b64decode(f.read().strip())
    except FileNotFoundError:
        raise AuthenticationError(f"Certificate file not found: {cert_path}")
    except (OSError, ValueError) as e:
        raise AuthenticationError(f"Failed to read certificate {cert_path}: {e}")

    try:
        private_key, certificate, _ = pkcs12.load_key_and_certificates(
            cert_bytes, password.encode("utf-8") if password else None
        )
    except ValueError as e:
        raise AuthenticationError(f"Failed to load certificate: {e}")
    if private_key is None or certificate is None:
        raise AuthenticationError("Certificate file holds no private key or certificate")

    private_key_pem = private_key.private_bytes(
        Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()
    ).decode("utf-8")
    thumbprint = certificate.fingerprint(SHA1()).hex()
    logger.info(f"Certificate loaded. Thumbprint: {thumbprint}")
    return private_key_pem, thumbprint


class Authenticator:
    """
    Handles MSAL-based authentication for Microsoft Graph.
    Supports:
      - Certificate-based app-only authentication
      - Delegated interactive authentication (device code flow)
    """

    def __init__(self, config: AuthConfig):
        self.config = config
        self._access_token: Optional[str] = None

    def acquire_token(self) -> str:
        """Acquire an access token based on configured auth mode."""
        if self.config.mode == "certificate":
            return self._acquire_certificate_token()
        elif self.config.mode == "delegated":
            return self._acquire_delegated_token()
        else:
            raise AuthenticationError(f"Unknown auth mode: {self.config.mode}")

    def _acquire_certificate_token(self) -> str:
        cert_config = self.config.certificate
        if not cert_config:
            raise AuthenticationError("Certificate auth config not provided.")

        logger.info("Authenticating with certificate-based app credentials...")
        password = cert_config.certificate_password or os.environ.get(CERT_PASSWORD_ENV, "")
        if not password:
            password = getpass.getpass("Enter the certificate password: ")
        private_key_pem, thumbprint = load_certificate(cert_config.certificate_path, password)

        app = msal.ConfidentialClientApplication(
            client_id=cert_config.client_id,
            authority=f"https://login.microsoftonline.com/{cert_config.tenant_id}",
            client_credential={
                "thumbprint": thumbprint,
                "private_key": private_key_pem,
            },
        )
        return self._take_token(app.acquire_token_for_client(scopes=APP_SCOPES), "Certificate")

    def _acquire_delegated_token(self) -> str:
        deleg_config = self.config.delegated
        if not deleg_config:
            raise AuthenticationError("Delegated auth config not provided.")

        logger.info("Initiating device code authentication flow...")
        app = msal.PublicClientApplication(
            client_id=deleg_config.client_id,
            authority=f"https://login.microsoftonline.com/{deleg_config.tenant_id}",
        )
        flow = app.initiate_device_flow(scopes=deleg_config.scopes)
        if "user_code" not in flow:
            raise AuthenticationError(
                f"Device code flow failed: {flow.get('error_description', 'Unknown')}"
            )

        print(f"\n{'='*60}")
        print(f"  To sign in, open: {flow['verification_uri']}")
        print(f"  Enter code: {flow['user_code']}")
        print(f"{'='*60}\n")
        return self._take_token(app.acquire_token_by_device_flow(flow), "Delegated")

    def _take_token(self, result: dict, mode: str) -> str:
        if "access_token" in result:
            self._access_token = result["access_token"]
            logger.info(f"{mode} authentication successful.")
            return self._access_token
        error = result.get("error_description", result.get("error", "Unknown"))
        raise AuthenticationError(f"{mode} auth failed: {error}")

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    @staticmethod
    def list_required_permissions() -> dict[str, str]:
        return REQUIRED_PERMISSIONS
