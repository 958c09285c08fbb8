"""PipeWire graph backend: snapshot via pw-dump, link mutation via pw-link."""
import logging
import subprocess
from typing import Protocol

logger = logging.getLogger(__name__)

EMPTY_DUMP = "[]"


class GraphBackend(Protocol):
    """External collaborator owning the live graph."""

    def fetch_dump(self) -> str: ...

    def create_link(self, output_port_id: int, input_port_id: int) -> bool: ...

    def destroy_link(self, link_id: int) -> bool: ...


class PipeWireBackend:
    """Shells out to the PipeWire command-line tools.

    A failed dump is reported as an empty graph, never raised, so callers see
    "no nodes" rather than a fetch error.
    """

    def __init__(
        self,
        dump_command: list[str] | None = None,
        link_command: str = "pw-link",
        timeout: float = 10.0,
    ):
        self.dump_command = dump_command or ["pw-dump"]
        self.link_command = link_command
        self.timeout = timeout

    def _run(self, args: list[str]) -> subprocess.CompletedProcess | None:
        try:
            return subprocess.run(
                args, capture_output=True, text=True, timeout=self.timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("Command %s could not run: %s", args[0], e)
            return None

    def fetch_dump(self) -> str:
        result = self._run(self.dump_command)
        if result is None:
            return EMPTY_DUMP
        if result.returncode != 0:
            logger.warning(
                "%s exited with %d: %s",
                self.dump_command[0], result.returncode, result.stderr.strip(),
            )
            return EMPTY_DUMP
        return result.stdout or EMPTY_DUMP

    def create_link(self, output_port_id: int, input_port_id: int) -> bool:
        result = self._run([self.link_command, str(output_port_id), str(input_port_id)])
        if result is None or result.returncode != 0:
            logger.warning(
                "pw-link %d %d failed: %s",
                output_port_id, input_port_id,
                result.stderr.strip() if result else "not run",
            )
            return False
        return True

    def destroy_link(self, link_id: int) -> bool:
        result = self._run([self.link_command, "-d", str(link_id)])
        if result is None or result.returncode != 0:
            logger.warning(
                "pw-link -d %d failed: %s",
                link_id, result.stderr.strip() if result else "not run",
            )
            return False
        return True
