from __future__ import annotations

from collections.abc import Mapping


def standard_tags(extra: Mapping[str, str] | None, run_seed: int | None) -> dict[str, str]:
    base: dict[str, str] = {"provisioned-by": "poc-provisioner"}
    if run_seed is not None:
        base["run-seed"] = str(run_seed)
    if extra:
        base.update({k: str(v) for k, v in extra.items() if v is not None})
    return base
