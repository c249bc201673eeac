from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
from typing import Iterable

import numpy as np

from audiotools.types import FileStatus
from audiotools.utils.hashing import sha256_hex_canonical_json

# (report kind, path into results) pairs gathered into distributions
_METRIC_PATHS = {
    "integrated_lufs": ("loudness", "integrated_lufs"),
    "loudness_range_lu": ("loudness", "loudness_range_lu"),
    "true_peak_dbtp": ("loudness", "true_peak_dbtp"),
    "sample_peak_dbfs": ("loudness", "sample_peak_dbfs"),
    "gain_db": ("plan", "gain_db"),
}


def _summary_stats(values: Iterable[float]) -> dict | None:
    vals = [float(v) for v in values if isinstance(v, (int, float)) and not isinstance(v, bool)]
    if not vals:
        return None
    arr = np.asarray(vals, dtype=np.float64)
    return {
        "count": int(arr.size),
        "mean": float(np.mean(arr)),
        "min": float(np.min(arr)),
        "p50": float(np.percentile(arr, 50)),
        "p90": float(np.percentile(arr, 90)),
        "max": float(np.max(arr)),
    }


def _metric_values(report: dict) -> dict[str, float]:
    results = report.get("results", {})
    sources = {
        "loudness": results.get("loudness") or results.get("measurement") or {},
        "plan": results.get("plan") or {},
    }
    out = {}
    for name, (section, key) in _METRIC_PATHS.items():
        value = sources[section].get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            out[name] = float(value)
    return out


def build_batch_summary(
    results: list[tuple[str, str, str | None, dict | None]],
    *,
    command: str = "",
    generated_utc: str | None = None
) -> dict:
    """
    Summarize a batch run.

    Args:
        results: (path, status, error message, report) per file, where
            status is a FileStatus value
        command: CLI sub-command that produced the reports

    Returns:
        Counts per status, failure causes, metric distributions and a
        checksum over the processed inputs
    """
    counts = {s.value: 0 for s in FileStatus}
    failure_causes: dict[str, int] = {}
    metric_values: dict[str, list[float]] = defaultdict(list)
    warning_counts: dict[str, int] = {}
    input_hashes: list[str] = []
    profile_hashes: set[str] = set()
    gain_limited = 0

    for _, status, err, report in results:
        if status in counts:
            counts[status] += 1
        else:
            counts[FileStatus.ERROR.value] += 1
        if err:
            failure_causes[err] = failure_causes.get(err, 0) + 1
        if not report:
            continue

        file_hash = report.get("input", {}).get("file_hash_sha256")
        if isinstance(file_hash, str) and file_hash:
            input_hashes.append(file_hash)
        profile_hash = report.get("profile", {}).get("profile_hash_sha256")
        if isinstance(profile_hash, str) and profile_hash:
            profile_hashes.add(profile_hash)

        for name, value in _metric_values(report).items():
            metric_values[name].append(value)
        if report.get("results", {}).get("plan", {}).get("gain_limited"):
            gain_limited += 1
        for w in report.get("warnings", []):
            warning_counts[w] = warning_counts.get(w, 0) + 1

    distributions = {}
    for name in sorted(metric_values):
        stats = _summary_stats(metric_values[name])
        if stats:
            distributions[name] = stats

    total = sum(counts.values())
    hashes_sorted = sorted(set(input_hashes))
    return {
        "schema_version": "1.0",
        "generated_utc": generated_utc or datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "command": command,
        "totals": {
            "files": total,
            "status_counts": counts,
            "gain_limited": gain_limited,
        },
        "failure_causes": dict(sorted(failure_causes.items(), key=lambda kv: kv[1], reverse=True)),
        "top_warnings": dict(sorted(warning_counts.items(), key=lambda kv: kv[1], reverse=True)),
        "distributions": distributions,
        "checksum": {
            "input_hashes_sha256": sha256_hex_canonical_json(hashes_sorted),
            "input_files": len(hashes_sorted),
            "profile_hashes": sorted(profile_hashes),
        },
    }


def render_batch_summary_md(summary: dict) -> str:
    """Render a batch summary as Markdown."""
    totals = summary.get("totals", {})
    counts = totals.get("status_counts", {})
    lines = [
        f"# Batch Summary ({summary.get('command') or 'audiotools'})",
        "",
        f"Generated: {summary.get('generated_utc', '')}",
        "",
        "## Status",
        "",
        f"- Files: {totals.get('files', 0)}",
    ]
    for key in sorted(counts):
        lines.append(f"- {key}: {counts[key]}")
    if totals.get("gain_limited"):
        lines.append(f"- gain limited: {totals['gain_limited']}")

    dists = summary.get("distributions", {})
    if dists:
        lines += ["", "## Distributions", "", "| Metric | Count | Min | P50 | P90 | Max |", "|---|---|---|---|---|---|"]
        for name, s in dists.items():
            lines.append(
                f"| {name} | {s['count']} | {s['min']:.2f} | {s['p50']:.2f} | {s['p90']:.2f} | {s['max']:.2f} |"
            )

    causes = summary.get("failure_causes", {})
    if causes:
        lines += ["", "## Failure Causes", ""]
        for cause, n in causes.items():
            lines.append(f"- {cause} ({n})")
    return "\n".join(lines) + "\n"
