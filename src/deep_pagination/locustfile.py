#!/usr/bin/python

import logging
import os
import time
import uuid

import gevent
from locust import HttpUser, constant, events, task
from locust.exception import StopUser
from opentelemetry import baggage, context

from deep_pagination import walker
from deep_pagination.config import TargetRegistry, env_bool, env_float, env_int, load_scenarios
from deep_pagination.fetcher import fetch_page
from deep_pagination.recorder import LatencyRecorder, OutcomeCounter
from deep_pagination.scenario import ScenarioRun
from deep_pagination.walker import WalkOutcome, log_walk_result, run_walk

# --- Logging standard ---
logging.basicConfig(
    level=os.environ.get("PAGINATION_LOG_LEVEL", "INFO").strip().upper() or "INFO",
    format="%(asctime)s %(levelname)s %(message)s",
)
logging.info("Starting deep-pagination load generator")

PAGE_SIZE = max(1, env_int("PAGINATION_PAGE_SIZE", walker.PAGE_SIZE))
MAX_PAGES = max(1, env_int("PAGINATION_MAX_PAGES", walker.MAX_PAGES))
REQUEST_TIMEOUT_SECONDS = env_float("PAGINATION_REQUEST_TIMEOUT", 30.0)
SAMPLES_CSV = os.environ.get("PAGINATION_SAMPLES_CSV", "").strip()
QUIT_WHEN_DONE = env_bool("PAGINATION_QUIT_WHEN_DONE", True)

REGISTRY = TargetRegistry.from_env()
SCENARIOS = load_scenarios(REGISTRY)
SCENARIO_RUNS = [ScenarioRun(config) for config in SCENARIOS]

for scenario in SCENARIOS:
    logging.info(
        "Scenario config: target=%s base=%s vus=%d iterations=%d max_duration=%.0fs",
        scenario.target.name,
        scenario.target.base_address,
        scenario.virtual_users,
        scenario.iterations_per_vu,
        scenario.max_duration_seconds,
    )
logging.info(
    "Walk config: page_size=%d max_pages=%d request_timeout=%.1fs total_users=%d",
    PAGE_SIZE,
    MAX_PAGES,
    REQUEST_TIMEOUT_SECONDS,
    sum(s.virtual_users for s in SCENARIOS),
)


class WalkFailed(Exception):
    pass


def page_stat_name(target_name):
    return f"{REGISTRY.resolve(target_name).label} page"


def report_page_sample(sample):
    events.request.fire(
        request_type="PAGE",
        name=page_stat_name(sample.target_name),
        response_time=sample.elapsed * 1000.0,
        response_length=0,
        response=None,
        context={"page": sample.page_index},
        exception=None,
    )


RECORDER = LatencyRecorder(sink=report_page_sample)
OUTCOMES = OutcomeCounter()


def build_baggage_value(session_id):
    return f"session.id={session_id},synthetic_request=true"


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    RECORDER.reset()
    OUTCOMES.reset()
    for run in SCENARIO_RUNS:
        run.reset()
        run.start()
    logging.info("Load test started. Walking %d targets.", len(SCENARIO_RUNS))


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    summaries = RECORDER.summary()
    for run in SCENARIO_RUNS:
        name = run.name
        stats = summaries.get(name)
        if stats is None:
            logging.info("[SUMMARY] target=%s pages=0", name)
        else:
            logging.info(
                "[SUMMARY] target=%s pages=%d deepest_page=%d min=%.1fms mean=%.1fms p50=%.1fms p95=%.1fms p99=%.1fms max=%.1fms",
                name,
                stats.count,
                stats.deepest_page,
                stats.min_ms,
                stats.mean_ms,
                stats.p50_ms,
                stats.p95_ms,
                stats.p99_ms,
                stats.max_ms,
            )
        logging.info(
            "[SUMMARY] target=%s %s",
            name,
            " ".join(f"{outcome.value}={OUTCOMES.get(name, outcome)}" for outcome in WalkOutcome),
        )

    if SAMPLES_CSV:
        try:
            written = RECORDER.write_csv(SAMPLES_CSV)
            logging.info("Wrote %d latency samples to %s", written, SAMPLES_CSV)
        except OSError as exc:
            logging.error("Cannot write latency samples to %s: %s", SAMPLES_CSV, exc)


class PaginationUser(HttpUser):
    abstract = True
    wait_time = constant(0)
    scenario = None

    def on_start(self):
        self.iterations_done = 0
        self.session_id = str(uuid.uuid4())
        ctx = baggage.set_baggage("session.id", self.session_id)
        ctx = baggage.set_baggage("synthetic_request", "true", context=ctx)
        self._otel_token = context.attach(ctx)

    def on_stop(self):
        if self._otel_token is not None:
            context.detach(self._otel_token)
            self._otel_token = None

    def _build_headers(self):
        return {
            "baggage": build_baggage_value(self.session_id),
            "x-load-generator-scenario": self.scenario.name,
        }

    def fetch(self, target, page_size, cursor):
        return fetch_page(
            self.client,
            target,
            page_size,
            cursor,
            name=f"{target.label} GET /stores",
            headers=self._build_headers(),
            timeout=REQUEST_TIMEOUT_SECONDS,
            catch_response=True,
        )

    def _finish(self):
        remaining = self.scenario.finish_user()
        logging.debug("[%s] Virtual user done, %d still running", self.scenario.name, remaining)
        runner = self.environment.runner
        if QUIT_WHEN_DONE and runner is not None and all(run.complete for run in SCENARIO_RUNS):
            logging.info("All scenarios finished, stopping the test")
            # quit from a separate greenlet so this user is not killed mid-task
            gevent.spawn(runner.quit)
        raise StopUser()

    @task
    def paginate(self):
        if not self.scenario.should_start_walk(self.iterations_done):
            self._finish()
        self.iterations_done += 1

        started = time.perf_counter()
        result = run_walk(
            self.fetch,
            self.scenario.config.target,
            RECORDER,
            page_size=PAGE_SIZE,
            page_limit=MAX_PAGES,
            should_continue=self.scenario.has_time_left,
        )
        log_walk_result(result)
        OUTCOMES.record(result.target_name, result.outcome)

        exception = None
        if result.outcome is WalkOutcome.REQUEST_FAILED:
            exception = WalkFailed(f"page {result.pages_fetched - 1}: {result.failure.error}")
        events.request.fire(
            request_type="WALK",
            name=f"{self.scenario.config.target.label} walk",
            response_time=(time.perf_counter() - started) * 1000.0,
            response_length=result.pages_fetched,
            response=None,
            context={"outcome": result.outcome.value},
            exception=exception,
        )


def build_user_class(run):
    target = run.config.target
    return type(
        f"{target.label}PaginationUser",
        (PaginationUser,),
        {
            "__module__": __name__,
            "abstract": False,
            "host": target.base_address,
            "fixed_count": run.config.virtual_users,
            "scenario": run,
        },
    )


USER_CLASSES = [build_user_class(run) for run in SCENARIO_RUNS]
globals().update({user_class.__name__: user_class for user_class in USER_CLASSES})
