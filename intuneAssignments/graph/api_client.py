"""
Microsoft Graph API client for fetching groups and Intune assignment data
"""

# Standard library imports
from typing import List, Dict, Optional

# Third-party imports
import requests
import urllib3


DEFAULT_API_VERSION = "beta"
DEFAULT_TIMEOUT = 30


class GroupNotFoundError(ValueError):
    """Raised when no directory group carries the requested display name."""

    def __init__(self, display_name: str, candidates: List[str] = None):
        message = f"Group '{display_name}' was not found in the directory"
        if candidates:
            message += f" (groups differing only in case: {', '.join(repr(name) for name in candidates)})"
        super().__init__(message)
        self.display_name = display_name
        self.candidates = list(candidates or [])


class GraphAPIClient:
    """Client for Microsoft Graph API operations"""

    def __init__(self, token: str, proxy: str = None, api_version: str = DEFAULT_API_VERSION,
                 timeout: float = DEFAULT_TIMEOUT):
        """Initialize the Graph API client with an access token.

        The client holds no HTTP session until connect() is called. Use it as a
        context manager to make sure the session is released on every exit path.

        Parameters:
            token (str): Microsoft Graph access token with Intune read permissions
            proxy (str): Proxy address in format 'host:port' (e.g., '127.0.0.1:8080').
                        If provided, routes all requests through proxy without cert verification.
            api_version (str): Graph channel used for device-management calls (default: 'beta')
            timeout (float): Per-request timeout in seconds handed to requests
        """
        self.token = token
        self.msgraph_domain = "graph.microsoft.com"
        self.api_version = api_version or DEFAULT_API_VERSION
        self.timeout = timeout
        self.session = None

        # Proxy configuration for debugging (e.g., Burp Suite)
        if proxy:
            self.proxies = {
                'http': f'http://{proxy}',
                'https': f'http://{proxy}'
            }
            self.verify_ssl = False
        else:
            self.proxies = None
            self.verify_ssl = True

    def connect(self) -> 'GraphAPIClient':
        """Open the HTTP session used for every subsequent call."""
        if self.session is not None:
            return self
        if not self.verify_ssl:
            # Suppress SSL warnings when using proxy
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        # HTTP Session for connection pooling (reuse TCP connections)
        self.session = requests.Session()
        self.session.proxies = self.proxies
        self.session.verify = self.verify_ssl
        self.session.headers.update({
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json"
        })
        return self

    def disconnect(self) -> None:
        """Close the HTTP session and forget the token."""
        if self.session is not None:
            self.session.close()
        self.session = None
        self.token = None

    def __enter__(self):
        return self.connect()

    def __exit__(self, exc_type, exc_value, tb):
        self.disconnect()
        return False

    def _require_session(self) -> requests.Session:
        if self.session is None:
            raise RuntimeError("Graph client is not connected. Call connect() first.")
        return self.session

    def _get(self, url: str, params: Dict = None) -> Dict:
        """Issue a single GET and return the decoded JSON body.

        Raises:
            RuntimeError: If connect() was not called first
            requests.HTTPError: On any non-2xx response
            requests.RequestException: On transport failures
        """
        response = self._require_session().get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def build_url(self, resource_path: str, api_version: str = None) -> str:
        """Build an absolute Graph URL for a versioned resource path."""
        version = api_version or self.api_version
        return f"https://{self.msgraph_domain}/{version}/{resource_path.strip('/')}"

    def validate_token(self) -> tuple[bool, str]:
        """Validate the access token by making a test API call.

        Tests the token against the /organization endpoint, which every
        directory reader can access.

        Returns:
            tuple[bool, str]: A tuple containing:
                - bool: True if token is valid and has permissions, False otherwise
                - str: Error message if validation failed, empty string if successful
        """
        url = self.build_url("organization", api_version="v1.0")

        try:
            response = self._require_session().get(url, timeout=self.timeout)

            if response.status_code == 401:
                return False, "Invalid or expired access token. Please provide a valid Microsoft Graph access token."
            elif response.status_code == 403:
                return False, "Access token is valid but lacks required permissions. Ensure the token has User.Read, Group.Read.All and the DeviceManagement*.Read.All permissions."
            elif response.status_code >= 400:
                return False, f"Token validation failed with status {response.status_code}: {response.text}"

            return True, ""
        except requests.exceptions.Timeout:
            return False, "Token validation timed out. Check your network connection."
        except requests.exceptions.RequestException as e:
            return False, f"Token validation failed: {str(e)}"

    def get_group_by_display_name(self, display_name: str) -> Dict:
        """Resolve a directory group by its display name.

        An exact match wins. Failing that, a single group whose name differs only
        in case is accepted; several such groups are ambiguous and not resolved.

        Parameters:
            display_name (str): Display name of the group

        Returns:
            Dict: The group object with at least 'id' and 'displayName'

        Raises:
            GroupNotFoundError: If no group matches, or the case-insensitive matches are ambiguous
            requests.HTTPError: If the API request fails
        """
        # OData string literals escape single quotes by doubling them
        escaped = display_name.replace("'", "''")
        params = {
            '$filter': f"displayName eq '{escaped}'",
            '$select': 'id,displayName'
        }
        data = self._get(self.build_url("groups", api_version="v1.0"), params=params)

        groups = data.get('value', [])
        for group in groups:
            if group.get('displayName') == display_name:
                return {'id': group['id'], 'displayName': group['displayName']}

        # The eq filter ignores case; accept a differently-cased name only when it is unambiguous
        folded = display_name.casefold()
        near_matches = [group for group in groups if str(group.get('displayName', '')).casefold() == folded]
        if len(near_matches) == 1:
            group = near_matches[0]
            return {'id': group['id'], 'displayName': group['displayName']}

        raise GroupNotFoundError(display_name, candidates=[group.get('displayName') for group in near_matches])

    def list_with_assignments(self, resource_path: str) -> List[Dict]:
        """List every object at a resource path with its assignments expanded.

        Only the first page is read; '@odata.nextLink' is not followed.

        Parameters:
            resource_path (str): Path below the API version, e.g. 'deviceAppManagement/mobileApps'

        Returns:
            List[Dict]: Remote objects, each carrying an 'assignments' list

        Raises:
            requests.HTTPError: If the API request fails
        """
        data = self._get(self.build_url(resource_path), params={'$expand': 'assignments'})
        return data.get('value', [])

    def get_with_assignments(self, resource_path: str, object_id: str) -> Optional[Dict]:
        """Fetch one object by id with its assignments expanded.

        Part of the client surface for callers that already hold an object id;
        the report pipeline itself only uses list_with_assignments().

        Returns:
            Optional[Dict]: The object, or None if it no longer exists

        Raises:
            requests.HTTPError: On any failure other than 404
        """
        url = self.build_url(f"{resource_path.strip('/')}/{object_id}")
        try:
            return self._get(url, params={'$expand': 'assignments'})
        except requests.exceptions.HTTPError as e:
            if e.response is not None and e.response.status_code == 404:
                # Object deleted
                return None
            raise
