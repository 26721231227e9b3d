"""
Assignment aggregation: normalizes Intune endpoints into filtered assignment records
"""

# Standard library imports
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional

# Local imports
from ..graph.api_client import GraphAPIClient
from .categories import endpoints_for, expand_categories


def sentinel_display_name(category: str) -> str:
    return f"No {category} assigned"


def targets_group(remote_object: Dict, group_id: str) -> bool:
    """Check whether any assignment of a remote object targets the group.

    Group ids are compared with exact string equality.
    """
    for assignment in remote_object.get('assignments') or []:
        target = assignment.get('target') or {}
        if target.get('groupId') == group_id:
            return True
    return False


def make_record(display_name: str, last_modified: Optional[str], sub_label: Optional[str]) -> Dict:
    return {
        'displayName': display_name,
        'lastModified': last_modified,
        'subLabel': sub_label,
    }


def is_sentinel(record: Dict, category: str) -> bool:
    """Check whether a record is the "no assignments" placeholder of a category."""
    return record.get('lastModified') is None and record.get('displayName') == sentinel_display_name(category)


class AssignmentAggregator:
    """Collects the assignment records that target one group"""

    def __init__(self, api_client: GraphAPIClient, threads: int = 1, progress_callback=None):
        """Initialize the aggregator.

        Parameters:
            api_client (GraphAPIClient): Connected Graph API client
            threads (int): Number of endpoint listings to run at once (default: 1, sequential)
            progress_callback (callable, optional): Callback function(percent, message) for progress updates
        """
        self.api_client = api_client
        self.threads = max(1, int(threads or 1))
        self.progress_callback = progress_callback

    def _records_for_endpoint(self, group: Dict, category: str, endpoint: Dict, fan_out: bool) -> List[Dict]:
        """List one endpoint and turn its matching objects into records."""
        sub_label = endpoint['categoryLabel'] if fan_out else None
        remote_objects = self.api_client.list_with_assignments(endpoint['path'])

        records = []
        for remote_object in remote_objects:
            if not targets_group(remote_object, group['id']):
                continue
            # Settings catalog policies carry 'name' instead of 'displayName'
            display_name = remote_object.get('displayName') or remote_object.get('name')
            records.append(make_record(display_name, remote_object.get('lastModifiedDateTime'), sub_label))

        if not records:
            records.append(make_record(sentinel_display_name(category), None, sub_label))
        return records

    def aggregate(self, group: Dict, category: str, endpoints: List[Dict] = None) -> List[Dict]:
        """Build the ordered assignment records of one category.

        Endpoints are listed in declaration order; within an endpoint, objects keep
        the order of the remote listing. Every endpoint without a match contributes
        one sentinel record.

        Parameters:
            group (Dict): Resolved group with 'id' and 'displayName'
            category (str): Category name, used for sentinel text
            endpoints (List[Dict], optional): Endpoint definitions. Defaults to the category's table entry.

        Returns:
            List[Dict]: Assignment records

        Raises:
            requests.RequestException: Any listing failure, unmodified
        """
        if endpoints is None:
            endpoints = endpoints_for(category)
        if not endpoints:
            raise ValueError(f"Category '{category}' has no endpoints")

        fan_out = len(endpoints) > 1

        if self.threads == 1 or not fan_out:
            per_endpoint = [self._records_for_endpoint(group, category, endpoint, fan_out)
                            for endpoint in endpoints]
        else:
            with ThreadPoolExecutor(max_workers=min(self.threads, len(endpoints))) as executor:
                futures = [executor.submit(self._records_for_endpoint, group, category, endpoint, fan_out)
                           for endpoint in endpoints]
                # Collected in submission order, not completion order
                per_endpoint = [future.result() for future in futures]

        records = []
        for endpoint_records in per_endpoint:
            records.extend(endpoint_records)
        return records

    def aggregate_categories(self, group: Dict, categories: Iterable[str]) -> Dict[str, List[Dict]]:
        """Run the aggregation for each selected category.

        Parameters:
            group (Dict): Resolved group
            categories (Iterable[str]): Selected category names, 'All' allowed

        Returns:
            Dict[str, List[Dict]]: Records per category, in key-sorted order. Every
                                   selected category is present.
        """
        selected = expand_categories(categories)
        results = {}

        for index, category in enumerate(selected, start=1):
            if self.progress_callback:
                percent = 20 + int(70 * (index - 1) / len(selected))
                self.progress_callback(percent, f"Fetching {category} ({index}/{len(selected)})...")

            records = self.aggregate(group, category)
            results[category] = records

            if self.progress_callback:
                matches = sum(1 for record in records if not is_sentinel(record, category))
                self.progress_callback(percent, f"✓ {category}: {matches} assignment(s)")

        return results
