"""
Token acquisition and inspection for Microsoft Graph
"""

# Standard library imports
from typing import Optional, Callable

# Third-party imports
import jwt
import msal


DEFAULT_AUTHORITY_TENANT = "organizations"

# Delegated permissions needed to read groups and every Intune assignment surface
GRAPH_SCOPES = [
    "https://graph.microsoft.com/DeviceManagementApps.Read.All",
    "https://graph.microsoft.com/DeviceManagementConfiguration.Read.All",
    "https://graph.microsoft.com/DeviceManagementServiceConfig.Read.All",
    "https://graph.microsoft.com/Group.Read.All",
    # Token validation reads /organization
    "https://graph.microsoft.com/User.Read",
]


def acquire_token_device_flow(client_id: str, tenant_id: str = None,
                              prompt: Optional[Callable[[str], None]] = print) -> str:
    """Acquire a delegated Graph access token with the device-code flow.

    Parameters:
        client_id (str): Application (client) ID of a public client app registration
        tenant_id (str, optional): Tenant ID or domain. Defaults to 'organizations'.
        prompt (callable, optional): Receives the sign-in instructions for the user

    Returns:
        str: The access token

    Raises:
        ValueError: If the flow cannot be started or the user does not complete it
    """
    authority = f"https://login.microsoftonline.com/{tenant_id or DEFAULT_AUTHORITY_TENANT}"
    app = msal.PublicClientApplication(client_id, authority=authority)

    flow = app.initiate_device_flow(scopes=GRAPH_SCOPES)
    if 'user_code' not in flow:
        raise ValueError(f"Could not start device code flow: {flow.get('error_description', flow.get('error'))}")

    if prompt:
        prompt(flow['message'])

    result = app.acquire_token_by_device_flow(flow)
    token = result.get('access_token')
    if not token:
        raise ValueError(f"Authentication failed: {result.get('error_description', 'Unknown error')}")
    return token


def get_tenant_id(token: str) -> Optional[str]:
    """Read the tenant ID ('tid' claim) from an access token without verifying it."""
    if not token:
        return None
    try:
        decoded = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return None
    return decoded.get('tid')
