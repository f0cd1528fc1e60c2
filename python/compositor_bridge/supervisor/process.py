"""
Compositor process supervision.

Launches the platform-specific compositor build with its control port in the
environment and polls the control endpoint until it answers. The process is
started once; restarting it after a crash is not handled here.
"""

import asyncio
import logging
import os
import platform
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional, Union

from ..control.client import ControlClient
from ..errors import ConfigurationError, ProcessUnreachable
from ..metrics import MetricsCollector, get_metrics

logger = logging.getLogger("vcb.supervisor")

API_PORT_ENV = "MEMBRANE_VIDEO_COMPOSITOR_API_PORT"


class HostPlatform(str, Enum):
    """Platforms a compositor build is shipped for."""

    DARWIN_AARCH64 = "darwin_aarch64"
    DARWIN_X86_64 = "darwin_x86_64"
    LINUX_X86_64 = "linux_x86_64"


_ARCH_ALIASES = {
    "arm64": "aarch64",
    "aarch64": "aarch64",
    "x86_64": "x86_64",
    "amd64": "x86_64",
}

_PLATFORMS = {
    ("darwin", "aarch64"): HostPlatform.DARWIN_AARCH64,
    ("darwin", "x86_64"): HostPlatform.DARWIN_X86_64,
    ("linux", "x86_64"): HostPlatform.LINUX_X86_64,
}


def detect_platform(system: Optional[str] = None, machine: Optional[str] = None) -> HostPlatform:
    """
    Map the host OS and CPU architecture to a compositor build.

    Raises:
        ConfigurationError: No build exists for this host
    """
    system = (system or platform.system()).lower()
    raw_machine = machine or platform.machine()
    arch = _ARCH_ALIASES.get(raw_machine.lower())

    key = _PLATFORMS.get((system, arch)) if arch else None
    if key is None:
        raise ConfigurationError(f"Unsupported platform: {system}/{raw_machine}")
    return key


def resolve_executable(app_dir: Union[str, Path], host: HostPlatform) -> Path:
    """Path of the compositor binary for a platform inside the app directory."""
    return Path(app_dir) / host.value / "video_compositor" / "video_compositor"


class ProcessSupervisor:
    """Starts the compositor and waits for its control endpoint."""

    def __init__(
        self,
        client: ControlClient,
        app_dir: Union[str, Path],
        max_attempts: int = 50,
        poll_interval: float = 0.1,
        inherit_output: bool = False,
        metrics: Optional[MetricsCollector] = None,
    ):
        """
        Initialize supervisor.

        Args:
            client: Control client bound to the compositor's control port
            app_dir: Directory with one compositor build per platform key
            max_attempts: Readiness probes before giving up
            poll_interval: Seconds between probes
            inherit_output: Let the compositor write to our stdout/stderr
            metrics: Metrics collector (global collector by default)
        """
        self.client = client
        self.app_dir = Path(app_dir)
        self.max_attempts = max_attempts
        self.poll_interval = poll_interval
        self.inherit_output = inherit_output
        self._metrics = metrics or get_metrics()
        self._process: Optional[asyncio.subprocess.Process] = None

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    def resolve(self) -> Path:
        return resolve_executable(self.app_dir, detect_platform())

    async def start_and_wait_ready(
        self,
        executable_path: Optional[Union[str, Path]] = None,
        env: Optional[Mapping[str, str]] = None,
        max_attempts: Optional[int] = None,
        poll_interval: Optional[float] = None,
    ) -> int:
        """
        Launch the compositor and block until its control endpoint answers.

        Args:
            executable_path: Binary to run (resolved from the platform table by default)
            env: Extra environment for the child
            max_attempts: Override the probe budget
            poll_interval: Override the probe interval

        Returns:
            Number of probes it took

        Raises:
            ConfigurationError: Unsupported platform or binary cannot be executed
            ProcessUnreachable: Control endpoint never answered
        """
        path = Path(executable_path) if executable_path else self.resolve()
        await self._spawn(path, env)
        return await self.wait_ready(max_attempts, poll_interval)

    async def _spawn(self, path: Path, env: Optional[Mapping[str, str]]) -> None:
        child_env = os.environ.copy()
        if env:
            child_env.update(env)
        child_env[API_PORT_ENV] = str(self.client.port)

        output = None if self.inherit_output else asyncio.subprocess.DEVNULL
        logger.info(f"Starting compositor {path} (control port {self.client.port})")
        try:
            self._process = await asyncio.create_subprocess_exec(
                str(path),
                env=child_env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=output,
                stderr=output,
                start_new_session=True,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise ConfigurationError(f"Cannot execute compositor at {path}: {e}") from e

        logger.info(f"Compositor spawned with PID {self._process.pid}")

    async def wait_ready(
        self,
        max_attempts: Optional[int] = None,
        poll_interval: Optional[float] = None,
    ) -> int:
        """
        Probe the control endpoint until any HTTP answer arrives.

        An error status still counts as ready: the server is up and parsing
        requests, it just did not like an empty one.
        """
        attempts = max_attempts if max_attempts is not None else self.max_attempts
        interval = poll_interval if poll_interval is not None else self.poll_interval

        for attempt in range(1, attempts + 1):
            await asyncio.sleep(interval)

            result = await self.client.send_custom({})
            self._metrics.startup_probe(result.answered)
            if result.answered:
                logger.info(f"Compositor control endpoint ready after {attempt} probe(s)")
                return attempt

            if self._process is not None and self._process.returncode is not None:
                raise ProcessUnreachable(
                    f"Compositor exited with code {self._process.returncode} during startup",
                    attempts=attempt,
                )

        raise ProcessUnreachable(
            f"Failed to start and connect to compositor on port {self.client.port} "
            f"after {attempts} attempts",
            attempts=attempts,
        )

    async def stop(self, timeout: float = 5.0) -> None:
        """Terminate the compositor process."""
        process = self._process
        if process is None or process.returncode is not None:
            return

        logger.info(f"Stopping compositor (PID {process.pid})")
        try:
            process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Compositor did not exit within {timeout}s, killing")
            process.kill()
            await process.wait()
