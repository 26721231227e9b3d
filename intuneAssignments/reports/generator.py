"""
Report generation for group assignment results
"""

# Standard library imports
import html
import re
from datetime import datetime
from pathlib import Path
from typing import List, Dict

# Local imports
from ..graph.auth import get_tenant_id


CATEGORY_TITLES = {
    'Applications': 'Applications',
    'ApplicationConfigurations': 'Application Configurations',
    'ApplicationProtectionPolicies': 'Application Protection Policies',
    'DeviceCompliancePolicies': 'Device Compliance Policies',
    'DeviceConfigurationPolicies': 'Device Configuration Policies',
    'PlatformScripts': 'Platform Scripts',
    'RemediationScripts': 'Remediation Scripts',
    'WindowsAutoPilotProfiles': 'Windows AutoPilot Profiles',
}

REPORT_STYLE = """
body { font-family: Segoe UI, Arial, sans-serif; margin: 2em; color: #222; }
h1 { color: #0078d4; }
h2 { border-bottom: 2px solid #0078d4; padding-bottom: 4px; margin-top: 2em; }
table { border-collapse: collapse; width: 100%; }
th, td { border: 1px solid #ddd; padding: 6px 10px; text-align: left; }
th { background: #f3f2f1; }
tr.none-found td { color: #888; font-style: italic; }
.meta { color: #555; font-size: 0.9em; }
"""


class ReportGenerator:
    """Generates HTML reports for group assignment results"""

    def __init__(self, token: str = None, progress_callback=None):
        """Initialize the report generator.

        Extracts the tenant ID from the access token for the report header.

        Parameters:
            token (str, optional): Microsoft Graph access token (JWT). Default is None.
            progress_callback (callable, optional): Callback function(percent, message) for progress updates.
        """
        self.progress_callback = progress_callback
        self.tenant_id = get_tenant_id(token)

    @staticmethod
    def sort_records(records: List[Dict]) -> List[Dict]:
        """Order records by platform/provider label, keeping listing order within a label."""
        return sorted(records, key=lambda record: (record.get('subLabel') is not None, record.get('subLabel') or ''))

    @staticmethod
    def format_timestamp(value) -> str:
        """Render a Graph ISO-8601 timestamp as 'YYYY-MM-DD HH:MM:SS'."""
        if not value:
            return ''
        try:
            return datetime.strptime(str(value)[:19], "%Y-%m-%dT%H:%M:%S").strftime("%Y-%m-%d %H:%M:%S")
        except ValueError:
            return str(value)

    @staticmethod
    def report_filename(group_display_name: str) -> str:
        """Build the report file name, stripping characters invalid in file names."""
        safe_name = re.sub(r'[\\/*?:"<>|]', "", group_display_name).strip() or "group"
        return f"IntuneAssignments_{safe_name}.html"

    def _render_section(self, category: str, records: List[Dict]) -> str:
        title = html.escape(CATEGORY_TITLES.get(category, category))
        ordered = self.sort_records(records)
        show_labels = any(record.get('subLabel') for record in ordered)

        header = "<th>Name</th><th>Last Modified</th>"
        if show_labels:
            header = "<th>Platform / Provider</th>" + header

        rows = []
        for record in ordered:
            css = ' class="none-found"' if record.get('lastModified') is None else ''
            cells = (f"<td>{html.escape(str(record.get('displayName') or ''))}</td>"
                     f"<td>{html.escape(self.format_timestamp(record.get('lastModified')))}</td>")
            if show_labels:
                cells = f"<td>{html.escape(str(record.get('subLabel') or ''))}</td>" + cells
            rows.append(f"<tr{css}>{cells}</tr>")

        return (f'<section id="{html.escape(category)}">\n'
                f"<h2>{title}</h2>\n"
                f"<table>\n<thead><tr>{header}</tr></thead>\n<tbody>\n"
                + "\n".join(rows) +
                "\n</tbody>\n</table>\n</section>")

    def generate_html_report(self, results: Dict[str, List[Dict]], group: Dict) -> str:
        """Generate the HTML document for a group's assignments.

        Parameters:
            results (Dict[str, List[Dict]]): Assignment records per category
            group (Dict): Resolved group with 'id' and 'displayName'

        Returns:
            str: Complete HTML document with one section per category
        """
        group_name = html.escape(group.get('displayName', ''))
        generated_at = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        meta = [f"Group ID: {html.escape(group.get('id', ''))}"]
        if self.tenant_id:
            meta.append(f"Tenant ID: {html.escape(self.tenant_id)}")
        meta.append(f"Generated: {generated_at}")

        sections = [self._render_section(category, records) for category, records in results.items()]

        return (
            "<!DOCTYPE html>\n"
            '<html lang="en">\n<head>\n<meta charset="utf-8">\n'
            f"<title>Intune Assignments - {group_name}</title>\n"
            f"<style>{REPORT_STYLE}</style>\n"
            "</head>\n<body>\n"
            f"<h1>Intune Assignments for {group_name}</h1>\n"
            f'<p class="meta">{" | ".join(meta)}</p>\n'
            + "\n".join(sections) +
            "\n</body>\n</html>\n"
        )

    def save_html_report(self, results: Dict[str, List[Dict]], group: Dict, output_dir) -> str:
        """Render and write the report into output_dir, creating it if needed.

        Returns:
            str: Path to the written HTML file
        """
        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)

        report_file = output_path / self.report_filename(group.get('displayName', ''))
        with open(report_file, 'w', encoding='utf-8') as f:
            f.write(self.generate_html_report(results, group))

        if self.progress_callback:
            self.progress_callback(95, f"✓ Report written to {report_file}")

        return str(report_file)
