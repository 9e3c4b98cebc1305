import csv
import json
import logging
import os
import time
from dataclasses import asdict
from typing import List, Dict, Any, TextIO

from config import TestConfig, SUMMARY_CSV_NAME
from metrics import RequestOutcome, Summary

logger = logging.getLogger(__name__)


def summary_to_dict(summary: Summary) -> Dict[str, Any]:
    data = summary._asdict()
    data["status_counts"] = {str(status): count for status, count in summary.status_counts}
    data["success_rate_percent"] = round(summary.success_rate, 2)
    return data


def format_summary(summary: Summary, config: TestConfig) -> str:
    lines = [
        f"Target: {config.target_url}",
        f"Virtual users: {config.virtual_users}, duration: {config.duration:.2f}s, "
        f"pacing: {config.pacing_interval:.3f}s",
        f"Elapsed: {summary.elapsed_s:.2f}s, throughput: {summary.requests_per_second:.2f} RPS",
        f"Total requests: {summary.total_requests}",
        f"  {summary.check_name}: {summary.success_count} passed, {summary.failure_count} failed "
        f"({summary.success_rate:.2f}% success)",
        f"  Transport errors: {summary.transport_errors}",
    ]
    if summary.status_counts:
        lines.append("  Status codes: " + ", ".join(f"{status}={count}" for status, count in summary.status_counts))
    lines.append(
        f"Latency (ms): min={summary.min_ms:.2f} avg={summary.mean_ms:.2f} max={summary.max_ms:.2f} "
        + " ".join(f"{k[:-3]}={v:.2f}" for k, v in summary.percentiles().items()))
    return "\n".join(lines)


def write_summary(summary: Summary, config: TestConfig, stream: TextIO, as_json: bool = False):
    if as_json:
        payload = {"config": asdict(config), "summary": summary_to_dict(summary)}
        stream.write(json.dumps(payload, indent=2) + "\n")
    else:
        stream.write(format_summary(summary, config) + "\n")
    stream.flush()


def write_outcomes_csv(outcomes: List[RequestOutcome], results_dir: str) -> str:
    if not os.path.exists(results_dir):
        os.makedirs(results_dir)
    csv_filename = os.path.join(results_dir, f"load_test_results_{time.strftime('%Y%m%d-%H%M%S')}.csv")
    with open(csv_filename, 'w', newline='') as f:
        writer = csv.writer(f)
        writer.writerow(RequestOutcome._fields)
        for outcome in outcomes:
            writer.writerow(list(outcome))
    logger.info(f"Detailed results saved to {csv_filename}")
    return csv_filename


def append_summary_csv(summary: Summary, config: TestConfig, results_dir: str) -> str:
    if not os.path.exists(results_dir):
        os.makedirs(results_dir)
    summary_filename = os.path.join(results_dir, SUMMARY_CSV_NAME)
    summary_data = {
        "timestamp": time.strftime('%Y-%m-%d %H:%M:%S'),
        "target_url": config.target_url,
        "virtual_users": config.virtual_users,
        "duration_s": config.duration,
        "pacing_interval_s": config.pacing_interval,
        "elapsed_s": round(summary.elapsed_s, 2),
        "total_requests": summary.total_requests,
        "success_count": summary.success_count,
        "failure_count": summary.failure_count,
        "transport_errors": summary.transport_errors,
        "success_rate_percent": round(summary.success_rate, 2),
        "throughput_rps": round(summary.requests_per_second, 2),
        "min_latency_ms": round(summary.min_ms, 2),
        "avg_latency_ms": round(summary.mean_ms, 2),
        "max_latency_ms": round(summary.max_ms, 2),
        **{k: round(v, 2) for k, v in summary.percentiles().items()},
    }
    file_exists = os.path.isfile(summary_filename)
    with open(summary_filename, 'a', newline='') as f:
        csv_writer = csv.DictWriter(f, fieldnames=list(summary_data.keys()))
        if not file_exists:
            csv_writer.writeheader()
        csv_writer.writerow(summary_data)
    logger.info(f"Summary appended to {summary_filename}")
    return summary_filename
