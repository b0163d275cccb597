"""Global pytest configuration for the BOINC exporter.

Ensures the ``src`` tree is importable regardless of how the repository is
checked out and provides shared fixtures for state files and metrics.
"""

import sys
from pathlib import Path
from typing import Callable

import pytest
from prometheus_client import CollectorRegistry

# Make the 'boinc_exporter' package directly importable
project_root = Path(__file__).parent.parent
src_dir = project_root / 'src'

if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))

from boinc_exporter.monitoring.metrics import BoincMetrics  # noqa: E402


SAMPLE_CLIENT_STATE = """<?xml version="1.0" encoding="ISO-8859-1" ?>
<client_state>
<host_info>
    <timezone>3600</timezone>
    <domain_name>cruncher.example.org</domain_name>
    <ip_addr>192.168.1.20</ip_addr>
</host_info>
<project>
    <master_url>https://einsteinathome.org/</master_url>
    <project_name>Einstein@Home</project_name>
</project>
<result>
    <name>wu_1</name>
    <final_cpu_time>0.000000</final_cpu_time>
    <report_deadline>1700000000.000000</report_deadline>
    <received_time>1690000000.000000</received_time>
    <version_num>106</version_num>
</result>
<result>
    <name>wu_2</name>
    <report_deadline>1700500000.000000</report_deadline>
    <received_time>1690500000.000000</received_time>
    <version_num>106</version_num>
</result>
<active_task_set>
    <active_task>
        <project_master_url>https://einsteinathome.org/</project_master_url>
        <result_name>wu_1</result_name>
        <active_task_state>1</active_task_state>
        <checkpoint_elapsed_time>120.500000</checkpoint_elapsed_time>
        <checkpoint_fraction_done>0.420000</checkpoint_fraction_done>
    </active_task>
</active_task_set>
</client_state>
"""


@pytest.fixture
def sample_state_xml() -> str:
    return SAMPLE_CLIENT_STATE


@pytest.fixture
def write_state(tmp_path: Path) -> Callable[[str], Path]:
    """Return a helper writing ``content`` to a state file under ``tmp_path``."""

    path = tmp_path / "client_state.xml"

    def _write(content: str) -> Path:
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def metrics() -> BoincMetrics:
    """Metric families registered on an isolated registry."""

    return BoincMetrics(CollectorRegistry())
