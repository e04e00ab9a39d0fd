"""
Common utility functions for the rtkernel solution.
"""

import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.parse import unquote, urlparse

import requests
from rich.console import Console
from rich.logging import RichHandler


# Rich console for output
console = Console()


def setup_logging(
    name: str = "rtkernel",
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """Set up logging with Rich handler."""
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Clear existing handlers
    logger.handlers.clear()

    # Console handler with Rich
    console_handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    # File handler if specified
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


# Default logger
logger = setup_logging()


def run_command(
    cmd: List[str],
    cwd: Optional[Path] = None,
    timeout: Optional[int] = None,
    capture_output: bool = True,
) -> Tuple[int, str, str]:
    """
    Run a command without a shell.

    Args:
        cmd: Command and arguments as list
        cwd: Working directory
        timeout: Command timeout in seconds
        capture_output: Capture stdout and stderr

    Returns:
        Tuple of (return_code, stdout, stderr)
    """
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            timeout=timeout,
            capture_output=capture_output,
            text=True,
        )
        return result.returncode, result.stdout or "", result.stderr or ""
    except subprocess.TimeoutExpired:
        logger.error(f"Command timed out after {timeout}s: {' '.join(cmd)}")
        return -1, "", f"Command timed out after {timeout}s"
    except OSError as e:
        logger.error(f"Command failed: {e}")
        return -1, "", str(e)


def extract_filename(url: str) -> str:
    """
    Extract the filename from a download link.

    Args:
        url: Download URL

    Returns:
        Final path segment, or an empty string if the path ends in '/'
    """
    path = urlparse(url).path
    return unquote(path.rsplit("/", 1)[-1])


def download_file(
    url: str,
    dest_dir: Path,
    timeout: int = 60,
    show_progress: bool = True,
) -> Optional[Path]:
    """
    Download a file into a directory, keeping the name from the URL.

    The file is written under a temporary '.part' name and renamed once the
    transfer completes, so an interrupted download never leaves a file that
    looks complete.

    Args:
        url: URL to download from
        dest_dir: Destination directory
        timeout: Request timeout in seconds
        show_progress: Show download progress

    Returns:
        Path of the downloaded file, or None if the download failed
    """
    filename = extract_filename(url)
    if not filename:
        logger.error(f"Cannot derive a filename from {url}")
        return None

    dest_dir.mkdir(parents=True, exist_ok=True)
    dest_path = dest_dir / filename
    part_path = dest_dir / f"{filename}.part"

    try:
        with requests.get(url, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            total_size = int(response.headers.get("content-length", 0))

            with open(part_path, "wb") as f:
                if show_progress and total_size > 0:
                    from rich.progress import Progress
                    with Progress(console=console) as progress:
                        task = progress.add_task(f"Downloading {filename}", total=total_size)
                        for chunk in response.iter_content(chunk_size=8192):
                            f.write(chunk)
                            progress.update(task, advance=len(chunk))
                else:
                    for chunk in response.iter_content(chunk_size=8192):
                        f.write(chunk)

        part_path.replace(dest_path)
        logger.debug(f"Downloaded {url} -> {dest_path}")
        return dest_path
    except (requests.RequestException, OSError) as e:
        logger.error(f"Failed to download {url}: {e}")
        if part_path.exists():
            part_path.unlink()
        return None
