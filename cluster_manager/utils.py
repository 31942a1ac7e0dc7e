# /*
# Copyright 2026 The Istio Cluster Manager Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Utility functions for running kubectl and summarising tool errors."""

from __future__ import annotations

import subprocess

import sh

from cluster_manager import logger
from cluster_manager.constants import KUBECTL_TIMEOUT


def run_kubectl(args: list[str], context: str | None = None, timeout: int = KUBECTL_TIMEOUT) -> tuple[bool, str, str]:
    """Run a kubectl command via subprocess and return (success, stdout, stderr).

    Uses subprocess instead of sh because callers branch on stderr content
    (e.g. ``NotFound``) and parse JSON from stdout, which needs the two
    streams kept apart.

    Args:
        args: kubectl arguments (e.g. ``["get", "pods", "-n", "default"]``).
        context: kube context to target, or None for the current context.
        timeout: Maximum seconds to wait for the command to complete.

    Returns:
        Tuple of (success, stdout, stderr).
    """
    cmd = ["kubectl"]
    if context:
        cmd += ["--context", context]
    cmd += args
    logger.debug("Running: %s", " ".join(cmd))
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return result.returncode == 0, result.stdout, result.stderr
    except (subprocess.SubprocessError, OSError) as exc:
        return False, "", str(exc)


def error_output(err: sh.ErrorReturnCode) -> str:
    """Return the most useful text from a failed sh command.

    Args:
        err: The exception raised by sh.

    Returns:
        Decoded stderr, falling back to stdout, truncated to 500 characters.
    """
    for stream in (err.stderr, err.stdout):
        if stream:
            text = stream.decode(errors="replace") if isinstance(stream, bytes) else str(stream)
            if text.strip():
                return text.strip()[:500]
    return f"exit code {err.exit_code}"
