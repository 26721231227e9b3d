"""
Main CLI entry point for Intune Assignments
"""

import argparse
import json
import sys
import tempfile
import time
import traceback
import webbrowser
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from .analyzer.aggregator import AssignmentAggregator, is_sentinel
from .analyzer.categories import CATEGORY_CHOICES, CATEGORY_ENDPOINTS
from .graph.api_client import DEFAULT_API_VERSION, DEFAULT_TIMEOUT, GraphAPIClient
from .graph.auth import acquire_token_device_flow
from .reports.generator import ReportGenerator
from .selection_config import SelectionConfig


def collect_assignments(token: str, config: Dict,
                        progress_callback: Optional[Callable] = None) -> Tuple[Dict, Dict[str, List[Dict]]]:
    """Resolve the group and gather its assignment records per category.

    The Graph session is opened for the duration of the call and always closed.

    Args:
        token: MS Graph access token
        config: Configuration dictionary (see run_report)
        progress_callback: Optional callback function(percent, message) for progress updates

    Returns:
        Tuple of (group, records per category)

    Raises:
        ValueError: Invalid token
        GroupNotFoundError: The group does not exist
        requests.RequestException: Any transport or authorization failure
    """
    api_client = GraphAPIClient(
        token,
        proxy=config.get('proxy'),
        api_version=config.get('api_version') or DEFAULT_API_VERSION,
        timeout=config.get('timeout') or DEFAULT_TIMEOUT,
    )

    with api_client:
        is_valid, error_msg = api_client.validate_token()
        if not is_valid:
            raise ValueError(f"Invalid token: {error_msg}")
        if progress_callback:
            progress_callback(5, "✓ Access token is valid")

        group = api_client.get_group_by_display_name(config['group'])
        if progress_callback:
            progress_callback(15, f"✓ Resolved group '{group['displayName']}' ({group['id']})")

        aggregator = AssignmentAggregator(
            api_client,
            threads=config.get('threads', 1),
            progress_callback=progress_callback,
        )
        results = aggregator.aggregate_categories(group, config['categories'])

    return group, results


def count_assignments(results: Dict[str, List[Dict]]) -> int:
    return sum(
        1
        for category, records in results.items()
        for record in records
        if not is_sentinel(record, category)
    )


def run_report(token: str, config: Dict, progress_callback=None) -> Dict:
    """Build an assignment report with given configuration.

    This function can be called programmatically from the web interface or CLI.
    Nothing is written unless every listing call succeeds.

    Args:
        token: MS Graph access token
        config: Report configuration dictionary with keys:
            - group: display name of the group (required)
            - categories: list of category names, 'All' allowed (required)
            - output_dir: directory for the HTML file (default: system temp directory)
            - api_version: Graph channel for device-management calls (default: 'beta')
            - timeout: per-request timeout in seconds (default: 30)
            - threads: concurrent endpoint listings per category (default: 1)
            - proxy: 'host:port' proxy without certificate verification (optional)
            - open_report: open the report in the default viewer (default: True)
        progress_callback: Optional callback function(percent, message) for progress updates

    Returns:
        Dictionary with:
            - success: bool
            - report_path: path to the HTML report
            - group: resolved group
            - assignments_count: number of matching assignments
            - runtime: seconds spent
            - error: error message if success=False
    """
    try:
        start_time = time.time()

        group, results = collect_assignments(token, config, progress_callback=progress_callback)

        output_dir = config.get('output_dir') or tempfile.gettempdir()
        generator = ReportGenerator(token=token, progress_callback=progress_callback)
        report_path = generator.save_html_report(results, group, output_dir)

        if config.get('open_report', True):
            webbrowser.open(Path(report_path).resolve().as_uri())

        if progress_callback:
            progress_callback(100, "✓ Report complete!")

        return {
            'success': True,
            'report_path': report_path,
            'group': group,
            'assignments_count': count_assignments(results),
            'runtime': time.time() - start_time,
        }

    except ValueError as e:
        # ValueError is used for token, selection and group lookup errors
        return {
            'success': False,
            'error': str(e)
        }
    except Exception as e:
        error_msg = f"{str(e)}\n{traceback.format_exc()}"
        return {
            'success': False,
            'error': error_msg
        }


def prompt_for_selection(selection: SelectionConfig, input_func: Callable = input, output: Callable = print) -> SelectionConfig:
    """Ask for whatever the selection is missing until it is complete."""
    while not selection.has_group():
        name = input_func("Group display name: ").strip()
        if name:
            selection.group = name
        else:
            output("A group name is required.")

    while not selection.has_categories():
        raw = input_func(f"Policy categories (comma-separated: {', '.join(CATEGORY_CHOICES)}): ")
        selection.unknown_categories = []
        for name in raw.split(','):
            if name.strip():
                selection.add_category(name)
        if selection.unknown_categories:
            output(f"Ignoring unknown categories: {', '.join(selection.unknown_categories)}")
        if not selection.has_categories():
            output("Select at least one policy category.")

    return selection


def main(argv: List[str] = None):
    """CLI entry point for the Intune assignments report."""
    start_timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    parser = argparse.ArgumentParser(
        description='Report the Intune policies and applications assigned to an Entra ID group',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ---------- Everything assigned to a group ---------
  python -m intuneAssignments --token YOUR_TOKEN --group "Finance" --categories All

  ---------- Only apps and compliance policies, written to a custom folder ---------
  python -m intuneAssignments --token YOUR_TOKEN --group "Finance" --categories Applications DeviceCompliancePolicies --output-dir ./reports

  ---------- Sign in interactively with the device-code flow ---------
  python -m intuneAssignments --client-id APP_ID --tenant-id TENANT_ID --selection-file selection.json
        """
    )

    # Authentication
    parser.add_argument('--token', help='Microsoft Graph access token')
    parser.add_argument('--client-id', help='Public client app ID used to sign in with the device-code flow when no token is given')
    parser.add_argument('--tenant-id', help='Tenant ID or domain for the device-code sign-in (default: organizations)')

    # Selection
    parser.add_argument('--group', help='Display name of the group to report on (prompted if missing)')
    parser.add_argument('--categories', nargs='+', metavar='CATEGORY',
                        help=f"Policy categories to inspect (prompted if missing): {', '.join(CATEGORY_CHOICES)}")
    parser.add_argument('--selection-file', help='Path to JSON file with "group" and "categories"')

    # Output
    parser.add_argument('--output-dir', default=tempfile.gettempdir(),
                        help='Directory for the HTML report (default: system temp directory)')
    parser.add_argument('--no-open', action='store_true', help='Do not open the report when done')

    # Graph
    parser.add_argument('--api-version', default=DEFAULT_API_VERSION,
                        help=f'Graph API version for device-management calls (default: {DEFAULT_API_VERSION})')
    parser.add_argument('--timeout', type=float, default=DEFAULT_TIMEOUT,
                        help=f'HTTP timeout in seconds (default: {DEFAULT_TIMEOUT})')
    parser.add_argument('--threads', type=int, default=1,
                        help='Concurrent endpoint listings within a category (default: 1)')
    parser.add_argument('--proxy', metavar='HOST:PORT',
                        help='Route all HTTP requests through specified proxy (e.g. 127.0.0.1:8080) without certificate verification')

    args = parser.parse_args(argv)

    try:
        # Selection input is completed before any network activity
        selection = SelectionConfig()
        if args.selection_file:
            try:
                selection = SelectionConfig.from_file(args.selection_file)
            except FileNotFoundError as e:
                print(f"\nError: {e}")
                return 1
            except (json.JSONDecodeError, ValueError) as e:
                print(f"\nError: Invalid selection file format: {e}")
                return 1
        selection.merge_args(group=args.group, categories=args.categories)

        if selection.unknown_categories:
            print(f"Error: Unknown policy categories: {', '.join(selection.unknown_categories)}")
            print(f"       Valid categories: {', '.join(CATEGORY_CHOICES)}")
            return 1

        prompt_for_selection(selection)

        if args.token:
            token = args.token
        elif args.client_id:
            token = acquire_token_device_flow(args.client_id, args.tenant_id)
        else:
            print("Error: Provide --token or --client-id to authenticate")
            return 1

        # Validate token format
        if not token or len(token) < 20:
            print("Error: Invalid token format")
            return 1

        categories = selection.selected_categories()
        config = {
            'group': selection.group,
            'categories': categories,
            'output_dir': args.output_dir,
            'api_version': args.api_version,
            'timeout': args.timeout,
            'threads': args.threads,
            'proxy': args.proxy,
            'open_report': not args.no_open,
        }

        endpoint_count = sum(len(CATEGORY_ENDPOINTS[category]) for category in categories)

        # Display report scope
        print(f"\n{'='*60}")
        print(f"Intune Assignments - Group Assignment Report")
        print(f"{'='*60}")
        print(f"Started: {start_timestamp}\n")
        print("Report Scope:")
        print(f"  Group:        {selection.group}")
        print(f"  Categories:   {', '.join(categories)}")
        print(f"  Endpoints:    {endpoint_count}")
        print(f"  API version:  {args.api_version}")
        print(f"{'='*60}")

        def progress_callback(percent: int, message: str):
            # Only print messages (not percents) for CLI output
            if message:
                print(message)

        result = run_report(token, config, progress_callback=progress_callback)

        if not result['success']:
            print(f"\nError: {result['error']}")
            return 1

        end_timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        print(f"\n{'='*60}")
        print(f"Summary")
        print(f"{'='*60}")
        print(f"Started:      {start_timestamp}")
        print(f"Finished:     {end_timestamp}")
        print(f"Runtime:      {result['runtime']:.2f}s")
        print(f"Assignments:  {result['assignments_count']}")
        print(f"Report:       {result['report_path']}")
        print(f"{'='*60}")

        return 0

    except KeyboardInterrupt:
        print("\n\nReport interrupted by user")
        return 1
    except ValueError as e:
        # ValueError is used for sign-in and selection errors
        print(f"\nError: {e}")
        return 1
    except Exception as e:
        print(f"\nUnexpected error: {e}")
        traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
