"""Tests for the rt-kernel command-line interface."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from rtkernel.cli import main
from rtkernel.config import RtKernelConfig
from rtkernel.errors import SourceUnavailable
from rtkernel.models import Selection


RT_INDEX = '<a href="5.10/">5.10/</a>\n<a href="6.1/">6.1/</a>\n'
RT_OLDER_INDEX = (
    '<a href="patch-5.10.78-rt54.patch.xz">x</a>\n'
    '<a href="patch-5.10.78-rt55.patch.xz">x</a>\n'
)
DEBIAN_RT_PAGE = '<a href="/trixie/linux-image-6.12.6-rt-amd64">linux-image-6.12.6-rt-amd64</a>'
DEB_URL = (
    "http://ftp.us.debian.org/debian/pool/main/l/linux-signed-amd64/"
    "linux-image-6.12.6-rt-amd64_6.12.6-1_amd64.deb"
)
DEBIAN_DOWNLOAD_PAGE = f'<ul><li><a href="{DEB_URL}">ftp.us.debian.org/debian</a></li></ul>'


class StubFetcher:
    """Serve fixed pages by URL."""

    def __init__(self, pages):
        self.pages = pages

    def fetch(self, url):
        if url not in self.pages:
            raise SourceUnavailable(url, "404 Not Found")
        return self.pages[url]


class ScriptedSelector:
    """Answer choices from a fixed script and record what was offered."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.offered = []

    def choose(self, candidates, title=""):
        self.offered.append((title, list(candidates)))
        answer = self.answers.pop(0)
        if answer is None:
            return Selection.cancel()
        return Selection.chosen(answer)


@pytest.fixture
def config(tmp_path: Path) -> RtKernelConfig:
    """Create a configuration with fixed mirrors."""
    return RtKernelConfig(
        kernel_mirror="https://kernel.test/pub/linux/kernel",
        debian_mirror="https://packages.test",
        debian_version_file=tmp_path / "debian_version",
    )


@pytest.fixture
def fetcher() -> StubFetcher:
    """Create a fetcher serving every index page."""
    return StubFetcher({
        "https://kernel.test/pub/linux/kernel/projects/rt/": RT_INDEX,
        "https://kernel.test/pub/linux/kernel/projects/rt/5.10/older/": RT_OLDER_INDEX,
        "https://packages.test/trixie/linux-image-rt-amd64": DEBIAN_RT_PAGE,
        "https://packages.test/trixie/amd64/linux-image-6.12.6-rt-amd64/download":
            DEBIAN_DOWNLOAD_PAGE,
    })


def invoke(args, **obj):
    runner = CliRunner()
    return runner.invoke(main, ["-q", *args], obj=obj)


def test_resolve_json(config) -> None:
    """Test resolving a patch to versions and links."""
    result = invoke(["resolve", "5.10.78-rt55", "--json"], config=config)

    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["kernel"] == "5.10.78"
    assert data["minor"] == "5.10"
    assert data["major_tag"] == "v5.x"
    assert data["kernel_url"] == "https://kernel.test/pub/linux/kernel/v5.x/linux-5.10.78.tar.xz"
    assert data["patch_sig_url"] == (
        "https://kernel.test/pub/linux/kernel/projects/rt/5.10/older/patch-5.10.78-rt55.patch.sign"
    )


def test_resolve_strips_argument(config) -> None:
    """Test whitespace around a pasted version is trimmed at the command line."""
    result = invoke(["resolve", " 5.10.78-rt55\n", "--json"], config=config)

    assert result.exit_code == 0
    assert json.loads(result.output)["patch"] == "5.10.78-rt55"


def test_resolve_malformed(config) -> None:
    """Test a malformed patch version exits with an error."""
    result = invoke(["resolve", "5.10.78"], config=config)

    assert result.exit_code == 1
    assert "Malformed" in result.output


def test_versions_lists_minors(config, fetcher) -> None:
    """Test listing rt minor versions."""
    result = invoke(["versions"], config=config, fetcher=fetcher)

    assert result.exit_code == 0
    assert result.output.split() == ["5.10", "6.1"]


def test_versions_lists_patches(config, fetcher) -> None:
    """Test listing the patches of one minor version."""
    result = invoke(["versions", "--minor", "5.10"], config=config, fetcher=fetcher)

    assert result.exit_code == 0
    assert result.output.split() == ["5.10.78-rt54", "5.10.78-rt55"]


def test_versions_source_unavailable(config) -> None:
    """Test an unreachable index exits with an error."""
    result = invoke(["versions"], config=config, fetcher=StubFetcher({}))

    assert result.exit_code == 1
    assert "Source unavailable" in result.output


def test_current(config) -> None:
    """Test showing the running kernel version."""
    with patch("rtkernel.catalog.platform.release", return_value="6.1.0-13-rt-amd64"):
        result = invoke(["current"], config=config)

    assert result.exit_code == 0
    assert result.output.strip() == "6.1.0"


def test_select(config, fetcher) -> None:
    """Test choosing a minor version and then a patch."""
    selector = ScriptedSelector("5.10", "5.10.78-rt55")
    result = invoke(["select"], config=config, fetcher=fetcher, selector=selector)

    assert result.exit_code == 0
    assert "5.10.78-rt55" in result.output
    assert [c for c, _ in selector.offered[0][1]] == ["5.10", "6.1"]
    assert [c for c, _ in selector.offered[1][1]] == ["5.10.78-rt54", "5.10.78-rt55"]


def test_select_cancelled(config, fetcher) -> None:
    """Test cancelling is a normal exit."""
    selector = ScriptedSelector(None)
    result = invoke(["select"], config=config, fetcher=fetcher, selector=selector)

    assert result.exit_code == 0
    assert "cancelled" in result.output
    assert len(selector.offered) == 1


def test_select_download(config, fetcher, tmp_path) -> None:
    """Test downloading every artifact of the chosen patch."""
    config.network_timeout = 7
    selector = ScriptedSelector("5.10", "5.10.78-rt55")
    output = tmp_path / "downloads"

    def fake_download(url, dest_dir, **kwargs):
        return dest_dir / url.rsplit("/", 1)[-1]

    with patch("rtkernel.cli.download_file", side_effect=fake_download) as mock_download:
        result = invoke(
            ["select", "--download", str(output)],
            config=config, fetcher=fetcher, selector=selector,
        )

    assert result.exit_code == 0
    urls = [call.args[0] for call in mock_download.call_args_list]
    assert [u.rsplit("/", 1)[-1] for u in urls] == [
        "linux-5.10.78.tar.xz",
        "linux-5.10.78.tar.sign",
        "patch-5.10.78-rt55.patch.xz",
        "patch-5.10.78-rt55.patch.sign",
    ]
    assert all(call.kwargs["timeout"] == 7 for call in mock_download.call_args_list)


def test_select_download_failure(config, fetcher, tmp_path) -> None:
    """Test a failed download exits with an error."""
    selector = ScriptedSelector("5.10", "5.10.78-rt55")
    with patch("rtkernel.cli.download_file", return_value=None):
        result = invoke(
            ["select", "--download", str(tmp_path)],
            config=config, fetcher=fetcher, selector=selector,
        )

    assert result.exit_code == 1
    assert "Download failed" in result.output


def test_config_set(config, tmp_path) -> None:
    """Test replacing a value in a configuration file."""
    path = tmp_path / ".config"
    path.write_text('CONFIG_SYSTEM_TRUSTED_KEYS="debian/certs.pem"\nCONFIG_PREEMPT_RT=y\n')

    result = invoke(["config", "set", str(path), "CONFIG_SYSTEM_TRUSTED_KEYS", '""'],
                    config=config)

    assert result.exit_code == 0
    assert path.read_text() == 'CONFIG_SYSTEM_TRUSTED_KEYS=""\nCONFIG_PREEMPT_RT=y\n'


def test_config_set_missing_key(config, tmp_path) -> None:
    """Test a missing key exits with an error and leaves the file."""
    path = tmp_path / ".config"
    path.write_text("CONFIG_PREEMPT_RT=y\n")

    result = invoke(["config", "set", str(path), "CONFIG_MISSING", "y"], config=config)

    assert result.exit_code == 1
    assert "Key not found" in result.output
    assert path.read_text() == "CONFIG_PREEMPT_RT=y\n"


def test_config_set_permission_denied(config, tmp_path) -> None:
    """Test a file system error exits with an error instead of a traceback."""
    path = tmp_path / ".config"
    path.write_text("CONFIG_PREEMPT_RT=y\n")

    with patch(
        "rtkernel.cli.apply_config_edit",
        side_effect=PermissionError(13, "Permission denied", ".config.lock"),
    ):
        result = invoke(["config", "set", str(path), "CONFIG_PREEMPT_RT", "n"], config=config)

    assert result.exit_code == 1
    assert "Permission denied" in result.output
    assert not isinstance(result.exception, PermissionError)


def test_config_comment_out(config, tmp_path) -> None:
    """Test commenting out a key, twice."""
    path = tmp_path / ".config"
    path.write_text("CONFIG_DEBUG_INFO=y\n")

    first = invoke(["config", "comment-out", str(path), "CONFIG_DEBUG_INFO"], config=config)
    second = invoke(["config", "comment-out", str(path), "CONFIG_DEBUG_INFO"], config=config)

    assert first.exit_code == 0
    assert second.exit_code == 0
    assert "already commented out" in second.output
    assert path.read_text() == "#CONFIG_DEBUG_INFO=y\n"


def test_debian_packages(config, fetcher) -> None:
    """Test listing the rt package of each release."""
    config.debian_version_file.write_text("trixie/sid\n")
    fetcher.pages["https://packages.test/sid/linux-image-rt-amd64"] = "<html/>"

    result = invoke(["debian", "packages", "--arch", "amd64"], config=config, fetcher=fetcher)

    assert result.exit_code == 0
    assert "linux-image-6.12.6-rt-amd64" in result.output


def test_debian_mirrors(config, fetcher) -> None:
    """Test listing the mirrors of the current rt package."""
    result = invoke(["debian", "mirrors", "trixie", "--arch", "amd64"],
                    config=config, fetcher=fetcher)

    assert result.exit_code == 0
    assert result.output.split() == [DEB_URL]


def test_debian_select(config, fetcher) -> None:
    """Test choosing a release and a mirror."""
    config.debian_version_file.write_text("trixie\n")
    selector = ScriptedSelector("trixie", DEB_URL)

    with patch("rtkernel.catalog.run_command", return_value=(0, "amd64\n", "")):
        result = invoke(["debian", "select"], config=config, fetcher=fetcher, selector=selector)

    assert result.exit_code == 0
    assert f"URL:     {DEB_URL}" in result.output
    assert selector.offered[0][1] == [("trixie", "linux-image-6.12.6-rt-amd64")]
