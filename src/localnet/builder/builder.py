"""
Artifact Builder.

Compiles contract crates into optimized deployable binaries and records them
in the dist manifest. Targets are built one at a time so a failure is always
attributable to a single contract.
"""

import logging
import os
import shutil
import tempfile
import time
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..errors import BuildFailure
from ..models.artifacts import BuildArtifact
from ..models.config import AppConfig, ContractConfig
from ..system.commands import command_to_str, render_command, run_command
from ..validation import ValidationError
from .fingerprint import file_sha256, fingerprint_sources
from .manifest import load_manifest, save_manifest, write_checksums

logger = logging.getLogger(__name__)


class ArtifactBuilder:
    """
    Builds contract artifacts and skips targets whose sources are unchanged.

    Attributes:
        build_count: Number of compile invocations made by this builder
    """

    def __init__(self, config: AppConfig):
        self.config = config
        self.artifacts_config = config.artifacts
        self.workspace_root = config.general.workspace_root
        self.output_dir = self.artifacts_config.output_dir
        self.manifest_path = self.output_dir / self.artifacts_config.manifest_name
        self.checksums_path = self.output_dir / self.artifacts_config.checksums_name
        self.build_count = 0

    def _select(self, targets: Optional[Iterable[str]]) -> List[ContractConfig]:
        contracts = {c.name: c for c in self.config.contracts}
        if targets is None:
            return list(self.config.contracts)
        selected = []
        for name in targets:
            if name not in contracts:
                raise ValidationError(
                    f"unknown contract '{name}'; available: {sorted(contracts)}",
                    field_name="targets",
                    value=name,
                )
            selected.append(contracts[name])
        return selected

    def _variables(self, contract: ContractConfig) -> Dict[str, str]:
        return {
            "name": contract.name,
            "package": contract.package,
            "workspace_root": str(self.workspace_root),
            "output_dir": str(self.output_dir),
        }

    def fingerprint(self, contract: ContractConfig) -> str:
        """Digest of the contract sources, shared inputs and build commands."""
        inputs = [contract.source_dir]
        inputs.extend(self.workspace_root / p for p in self.artifacts_config.shared_inputs)
        salt = [
            self.artifacts_config.build_command_template.format(**self._variables(contract)),
            self.artifacts_config.optimize_command_template or "",
        ]
        return fingerprint_sources(inputs, self.workspace_root, salt)

    def output_path(self, contract: ContractConfig) -> Path:
        return self.output_dir / f"{contract.name}.wasm"

    def _is_current(self, recorded: Optional[BuildArtifact], fingerprint: str) -> bool:
        if recorded is None or recorded.fingerprint != fingerprint:
            return False
        if not recorded.path.is_file():
            logger.info(f"Recorded artifact {recorded.path} is missing; rebuilding")
            return False
        if file_sha256(recorded.path) != recorded.checksum:
            logger.warning(f"Artifact {recorded.path} was modified after build; rebuilding")
            return False
        return True

    def inspect(self, targets: Optional[Iterable[str]] = None) -> Dict[str, BuildArtifact]:
        """
        Return recorded artifacts with their stale flag, without building.

        Contracts that were never built are omitted.
        """
        manifest = load_manifest(self.manifest_path)
        result = {}
        for contract in self._select(targets):
            recorded = manifest.get(contract.name)
            if recorded is not None:
                result[contract.name] = recorded.marked_stale(
                    not self._is_current(recorded, self.fingerprint(contract))
                )
        return result

    def build(self, targets: Optional[Iterable[str]] = None, force: bool = False) -> Dict[str, BuildArtifact]:
        """
        Build the requested contracts (all configured contracts by default).

        Args:
            targets: Contract names to build, None for all
            force: Rebuild even when the fingerprint matches

        Returns:
            Mapping of contract name to its current BuildArtifact

        Raises:
            BuildFailure: If a compile or optimize step exits non-zero
            ValidationError: If a target name is unknown
        """
        contracts = self._select(targets)
        manifest = load_manifest(self.manifest_path)
        results: Dict[str, BuildArtifact] = {}

        for contract in contracts:
            fingerprint = self.fingerprint(contract)
            recorded = manifest.get(contract.name)
            if not force and self._is_current(recorded, fingerprint):
                logger.info(f"{contract.name}: up to date ({fingerprint[:12]})")
                results[contract.name] = recorded
                continue

            logger.info(f"{contract.name}: building package '{contract.package}'")
            artifact = self._build_one(contract, fingerprint)
            manifest[contract.name] = artifact
            results[contract.name] = artifact
            # Persist after each target so earlier successes survive a later failure
            save_manifest(self.manifest_path, manifest)
            write_checksums(self.checksums_path, manifest)
            logger.info(f"{contract.name}: wrote {artifact.path} ({artifact.size} bytes, sha256 {artifact.checksum[:12]})")

        return results

    def _build_one(self, contract: ContractConfig, fingerprint: str) -> BuildArtifact:
        variables = self._variables(contract)
        build_cmd = render_command(self.artifacts_config.build_command_template, variables)

        self.build_count += 1
        returncode, _, stderr = run_command(build_cmd, cwd=self.workspace_root)
        if returncode != 0:
            logger.error(f"{contract.name}: '{command_to_str(build_cmd)}' exited with {returncode}")
            raise BuildFailure(contract.name, returncode, stderr, step="compile")

        compiled = self.workspace_root / self.artifacts_config.compiled_path_template.format(**variables)
        if not compiled.is_file():
            raise BuildFailure(contract.name, -1, f"compiler output not found at {compiled}", step="compile")

        self.output_dir.mkdir(parents=True, exist_ok=True)
        final_path = self.output_path(contract)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{contract.name}.", suffix=".wasm.tmp", dir=self.output_dir)
        os.close(fd)
        tmp_path = Path(tmp_name)
        try:
            optimize_template = self.artifacts_config.optimize_command_template
            if optimize_template:
                optimize_cmd = render_command(
                    optimize_template, {**variables, "input": compiled, "output": tmp_path}
                )
                returncode, _, stderr = run_command(optimize_cmd, cwd=self.workspace_root)
                if returncode != 0:
                    raise BuildFailure(contract.name, returncode, stderr, step="optimize")
            else:
                shutil.copyfile(compiled, tmp_path)

            if tmp_path.stat().st_size == 0:
                raise BuildFailure(contract.name, -1, "optimizer produced an empty file", step="optimize")

            checksum = file_sha256(tmp_path)
            size = tmp_path.stat().st_size
            os.replace(tmp_path, final_path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

        return BuildArtifact(
            name=contract.name,
            fingerprint=fingerprint,
            path=final_path,
            checksum=checksum,
            size=size,
            built_at=time.time(),
        )
