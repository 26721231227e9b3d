"""
Intune policy categories and the Graph endpoints that back each of them
"""

# Standard library imports
from typing import Dict, Iterable, List


ALL_CATEGORIES = 'All'

# Category -> ordered endpoint list. Single-endpoint categories reuse their
# own name as label; fan-out categories tag each endpoint with its platform.
CATEGORY_ENDPOINTS: Dict[str, List[Dict[str, str]]] = {
    'Applications': [
        {'categoryLabel': 'Applications', 'path': 'deviceAppManagement/mobileApps'},
    ],
    'ApplicationConfigurations': [
        {'categoryLabel': 'ApplicationConfigurations', 'path': 'deviceAppManagement/mobileAppConfigurations'},
    ],
    'ApplicationProtectionPolicies': [
        {'categoryLabel': 'AndroidManagedAppProtections', 'path': 'deviceAppManagement/androidManagedAppProtections'},
        {'categoryLabel': 'iOSManagedAppProtections', 'path': 'deviceAppManagement/iosManagedAppProtections'},
        {'categoryLabel': 'WindowsManagedAppProtections', 'path': 'deviceAppManagement/windowsManagedAppProtections'},
    ],
    'DeviceCompliancePolicies': [
        {'categoryLabel': 'DeviceCompliancePolicies', 'path': 'deviceManagement/deviceCompliancePolicies'},
    ],
    'DeviceConfigurationPolicies': [
        {'categoryLabel': 'DeviceConfigurations', 'path': 'deviceManagement/deviceConfigurations'},
        {'categoryLabel': 'ConfigurationPolicies', 'path': 'deviceManagement/configurationPolicies'},
        {'categoryLabel': 'GroupPolicyConfigurations', 'path': 'deviceManagement/groupPolicyConfigurations'},
    ],
    'PlatformScripts': [
        {'categoryLabel': 'PlatformScripts', 'path': 'deviceManagement/deviceManagementScripts'},
    ],
    'RemediationScripts': [
        {'categoryLabel': 'RemediationScripts', 'path': 'deviceManagement/deviceHealthScripts'},
    ],
    'WindowsAutoPilotProfiles': [
        {'categoryLabel': 'WindowsAutoPilotProfiles', 'path': 'deviceManagement/windowsAutopilotDeploymentProfiles'},
    ],
}

CATEGORY_CHOICES = sorted(CATEGORY_ENDPOINTS) + [ALL_CATEGORIES]

# Lowercase lookup so CLI and JSON input is case-insensitive
_CANONICAL_NAMES = {name.lower(): name for name in CATEGORY_CHOICES}


def canonical_category(name: str) -> str:
    """Return the canonical spelling of a category name.

    Raises:
        ValueError: If the name is not a known category
    """
    canonical = _CANONICAL_NAMES.get(str(name).strip().lower())
    if not canonical:
        raise ValueError(f"Unknown policy category '{name}'. Valid categories: {', '.join(CATEGORY_CHOICES)}")
    return canonical


def expand_categories(names: Iterable[str]) -> List[str]:
    """Expand a category selection into the sorted, de-duplicated list to process.

    'All' anywhere in the selection selects every category.

    Raises:
        ValueError: If a name is unknown or nothing is selected
    """
    selected = {canonical_category(name) for name in names}
    if not selected:
        raise ValueError("At least one policy category must be selected")
    if ALL_CATEGORIES in selected:
        return sorted(CATEGORY_ENDPOINTS)
    return sorted(selected)


def endpoints_for(category: str) -> List[Dict[str, str]]:
    """Return the endpoint definitions of one category."""
    canonical = canonical_category(category)
    if canonical == ALL_CATEGORIES:
        raise ValueError("'All' is a selection, not a category with endpoints")
    return CATEGORY_ENDPOINTS[canonical]
