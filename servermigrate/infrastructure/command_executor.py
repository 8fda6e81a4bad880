"""
Concrete implementation of command executor interface.
"""
import asyncio
import logging
from typing import List, Optional
from ..core.interfaces.command_executor import ICommandExecutor, CommandResult


class CommandExecutor(ICommandExecutor):
    """Runs zfs, zpool and systemctl with an allow-list on subcommands."""

    def __init__(self, timeout: int = 60):
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

        self._allowed_zfs_commands = {
            'list', 'get', 'set', 'create', 'destroy', 'snapshot',
            'send', 'receive', 'mount', 'version'
        }

        self._allowed_system_commands = {
            'zpool', 'zfs', 'systemctl'
        }

    async def execute_zfs(self, command: str, *args: str) -> CommandResult:
        """Execute ZFS command with validation."""
        if command not in self._allowed_zfs_commands:
            return CommandResult(
                success=False,
                returncode=1,
                stdout="",
                stderr=f"ZFS command '{command}' not allowed"
            )

        full_command = ["zfs", command] + list(args)
        return await self._execute_command(full_command)

    async def execute_system(self, command: str, *args: str) -> CommandResult:
        """Execute system command with validation."""
        if command not in self._allowed_system_commands:
            return CommandResult(
                success=False,
                returncode=1,
                stdout="",
                stderr=f"System command '{command}' not allowed"
            )

        full_command = [command] + list(args)
        return await self._execute_command(full_command)

    async def spawn_zfs(self, command: str, *args: str,
                        stdin: bool = False, stdout: bool = False) -> asyncio.subprocess.Process:
        """Start a streaming ZFS command (send/receive) without waiting for it.

        The caller owns the process and must wait for or kill it.
        """
        if command not in ('send', 'receive'):
            raise ValueError(f"ZFS command '{command}' cannot be streamed")

        full_command = ["zfs", command] + list(args)
        self.logger.debug(f"Spawning command: {' '.join(full_command)}")
        return await asyncio.create_subprocess_exec(
            *full_command,
            stdin=asyncio.subprocess.PIPE if stdin else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE if stdout else asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )

    async def _execute_command(self, command: List[str]) -> CommandResult:
        """Execute command with proper error handling."""
        process: Optional[asyncio.subprocess.Process] = None
        try:
            self.logger.debug(f"Executing command: {' '.join(command)}")

            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=1024*1024
            )

            try:
                stdout, stderr = await asyncio.wait_for(
                    process.communicate(),
                    timeout=self.timeout
                )
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
                return CommandResult(
                    success=False,
                    returncode=124,
                    stdout="",
                    stderr=f"Command timed out after {self.timeout} seconds"
                )

            stdout_str = stdout.decode('utf-8', errors='replace').strip()
            stderr_str = stderr.decode('utf-8', errors='replace').strip()
            returncode = process.returncode if process.returncode is not None else 1

            if returncode != 0:
                self.logger.warning(
                    f"Command failed with exit code {returncode}: {stderr_str}"
                )

            return CommandResult(
                returncode=returncode,
                stdout=stdout_str,
                stderr=stderr_str
            )

        except OSError as e:
            # Missing binary or exec failure
            self.logger.error(f"Command execution failed: {str(e)}")
            return CommandResult(
                success=False,
                returncode=127,
                stdout="",
                stderr=f"Command execution failed: {str(e)}"
            )
