#!/usr/bin/env python3
"""
Seed every benchmark target with the same number of stores before a run.

Targets are seeded in parallel, one thread each; store creation inside a
target goes through a bounded worker pool. Failed creations are logged and
counted but do not stop the seed.
"""

import argparse
import logging
import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List

import requests

from deep_pagination.config import ConfigError, TargetRegistry, env_float, parse_targets

logger = logging.getLogger(__name__)

NUM_STORES = 100000
PROGRESS_EVERY = 1000
CONCURRENCY = 20


@dataclass
class SeedReport:
    target_name: str
    created: int
    failed: int
    elapsed: float


def create_store(session, target, name, timeout):
    response = session.post(f"{target.base_address}/stores", json={"name": name}, timeout=timeout)
    if response.status_code not in (200, 201):
        raise RuntimeError(f"status {response.status_code}: {response.text[:200]}")


def seed_target(session, target, count=NUM_STORES, concurrency=CONCURRENCY, progress_every=PROGRESS_EVERY, timeout=10.0) -> SeedReport:
    logger.info("[%s] Starting seed of %d stores...", target.label, count)
    started = time.monotonic()
    lock = threading.Lock()
    counts = {"created": 0, "failed": 0}

    def _one(idx):
        try:
            create_store(session, target, f"store-{target.label}-{idx}", timeout)
        except (requests.RequestException, RuntimeError) as exc:
            logger.warning("[%s] Failed to create store %d: %s", target.label, idx, exc)
            with lock:
                counts["failed"] += 1
            return
        with lock:
            counts["created"] += 1
            done = counts["created"]
        if progress_every and done % progress_every == 0:
            logger.info("[%s] Seeded %d/%d...", target.label, done, count)

    with ThreadPoolExecutor(max_workers=max(1, concurrency)) as pool:
        list(pool.map(_one, range(count)))

    report = SeedReport(target.name, counts["created"], counts["failed"], time.monotonic() - started)
    logger.info(
        "[%s] Completed seeding in %.1fs (created=%d failed=%d)",
        target.label,
        report.elapsed,
        report.created,
        report.failed,
    )
    return report


def seed_all(registry, count=NUM_STORES, concurrency=CONCURRENCY, progress_every=PROGRESS_EVERY, timeout=10.0) -> List[SeedReport]:
    reports = []
    lock = threading.Lock()

    def _run(target):
        with requests.Session() as session:
            report = seed_target(session, target, count, concurrency, progress_every, timeout)
        with lock:
            reports.append(report)

    threads = [threading.Thread(target=_run, args=(t,), name=f"seed-{t.name}") for t in registry]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return sorted(reports, key=lambda r: r.target_name)


def main(argv=None):
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    parser = argparse.ArgumentParser(description="Seed benchmark targets with stores")
    parser.add_argument("--targets", default="", help="name=url,name=url (default: PAGINATION_TARGETS or built-in targets)")
    parser.add_argument("--count", type=int, default=NUM_STORES)
    parser.add_argument("--concurrency", type=int, default=CONCURRENCY)
    parser.add_argument("--progress-every", type=int, default=PROGRESS_EVERY)
    parser.add_argument("--timeout", type=float, default=env_float("PAGINATION_REQUEST_TIMEOUT", 10.0))
    args = parser.parse_args(argv)

    try:
        registry = TargetRegistry(parse_targets(args.targets)) if args.targets else TargetRegistry.from_env()
    except ConfigError as exc:
        print(f"Invalid target configuration: {exc}", file=sys.stderr)
        return 2
    if not len(registry):
        print("No targets to seed", file=sys.stderr)
        return 2

    reports = seed_all(registry, args.count, args.concurrency, args.progress_every, args.timeout)
    return 1 if any(r.failed for r in reports) else 0


if __name__ == "__main__":
    sys.exit(main())
