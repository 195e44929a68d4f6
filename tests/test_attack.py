"""Tests for the fixed-rate attacker."""

import threading
import time

import httpx
import pytest

from rampload.attack import Attacker
from rampload.metrics import MetricsAggregator
from rampload.models import Phase, RatePlan, Target
from rampload.ramp import run_ramp
from rampload.targets import StaticTargeter


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def _ok(request):
    return httpx.Response(200, content=b"pong")


class TestAttack:
    def test_issues_expected_number_of_hits(self):
        targeter = StaticTargeter([Target("GET", "http://svc.test/ping")])
        with Attacker(max_workers=4, client=_client(_ok)) as attacker:
            results = list(attacker.attack(targeter, 50, 0.2, "smoke"))
        assert len(results) == 10
        assert sorted(r.seq for r in results) == list(range(10))
        assert all(r.attack == "smoke" for r in results)
        assert all(r.status_code == 200 and r.error == "" for r in results)
        assert all(r.bytes_in == 4 for r in results)

    def test_phase_lasts_full_duration(self):
        targeter = StaticTargeter([Target("GET", "http://svc.test/ping")])
        attacker = Attacker(client=_client(_ok))
        began = time.monotonic()
        list(attacker.attack(targeter, 10, 0.3))
        assert time.monotonic() - began >= 0.29

    @pytest.mark.parametrize("frequency", [0, -5])
    def test_non_positive_frequency_sends_nothing(self, frequency):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200)

        attacker = Attacker(client=_client(handler))
        began = time.monotonic()
        results = list(attacker.attack(StaticTargeter([Target("GET", "http://svc.test/")]), frequency, 0.1))
        assert results == []
        assert calls == []
        assert time.monotonic() - began >= 0.09

    def test_sends_method_body_and_headers(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(201)

        target = Target(
            "POST",
            "http://svc.test/orders",
            body=b'{"sku": 1}',
            header={"X-Multi": ["a", "b"], "Content-Type": ["application/json"]},
        )
        attacker = Attacker(client=_client(handler))
        results = list(attacker.attack(StaticTargeter([target]), 10, 0.1))

        assert len(results) == 1
        request = seen[0]
        assert request.method == "POST"
        assert request.content == b'{"sku": 1}'
        assert request.headers.get_list("X-Multi") == ["a", "b"]
        assert results[0].bytes_out == len(b'{"sku": 1}')
        assert results[0].method == "POST"
        assert results[0].url == "http://svc.test/orders"

    def test_error_status_recorded(self):
        attacker = Attacker(client=_client(lambda request: httpx.Response(503)))
        results = list(attacker.attack(StaticTargeter([Target("GET", "http://svc.test/")]), 20, 0.1))
        assert len(results) == 2
        assert all(r.status_code == 503 for r in results)
        assert all(r.error == "503 Service Unavailable" for r in results)

    def test_redirect_status_is_not_an_error(self):
        attacker = Attacker(client=_client(lambda request: httpx.Response(304)))
        results = list(attacker.attack(StaticTargeter([Target("GET", "http://svc.test/")]), 10, 0.1))
        assert results[0].error == ""

    def test_transport_error_recorded_with_zero_status(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        attacker = Attacker(client=_client(handler))
        results = list(attacker.attack(StaticTargeter([Target("GET", "http://svc.test/")]), 20, 0.1))
        assert len(results) == 2
        assert all(r.status_code == 0 for r in results)
        assert all(r.error == "connection refused" for r in results)

    def test_no_targets_recorded_as_error(self):
        attacker = Attacker(client=_client(_ok))
        results = list(attacker.attack(StaticTargeter([]), 20, 0.1))
        assert len(results) == 2
        assert all(r.error == "no targets to attack" for r in results)

    def test_unencodable_header_recorded_as_error(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200)

        target = Target("GET", "http://svc.test/", header={"X": ["\u00e9\u4e2d"]})
        attacker = Attacker(client=_client(handler))
        results = list(attacker.attack(StaticTargeter([target]), 20, 0.1))
        assert len(results) == 2
        assert calls == []
        assert all(r.status_code == 0 for r in results)
        assert all(r.error != "" for r in results)

    def test_unexpected_exception_recorded_as_error(self):
        def handler(request):
            raise RuntimeError("handler blew up")

        attacker = Attacker(client=_client(handler))
        results = list(attacker.attack(StaticTargeter([Target("GET", "http://svc.test/")]), 20, 0.1))
        assert len(results) == 2
        assert all(r.status_code == 0 for r in results)
        assert all(r.error == "handler blew up" for r in results)

    def test_in_flight_hits_bounded_by_max_workers(self):
        lock = threading.Lock()
        state = {"active": 0, "peak": 0}

        def handler(request):
            with lock:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            time.sleep(0.05)
            with lock:
                state["active"] -= 1
            return httpx.Response(200)

        attacker = Attacker(max_workers=3, client=_client(handler))
        results = list(attacker.attack(StaticTargeter([Target("GET", "http://svc.test/")]), 200, 0.1))
        assert len(results) == 20
        assert state["peak"] <= 3

    def test_stop_ends_attack_early(self):
        attacker = Attacker(client=_client(_ok))
        targeter = StaticTargeter([Target("GET", "http://svc.test/")])
        began = time.monotonic()
        results = []
        for result in attacker.attack(targeter, 10, 30):
            results.append(result)
            attacker.stop()
        assert time.monotonic() - began < 5
        assert 1 <= len(results) < 300

    def test_closing_iterator_stops_attack(self):
        attacker = Attacker(client=_client(_ok))
        stream = attacker.attack(StaticTargeter([Target("GET", "http://svc.test/")]), 10, 30)
        began = time.monotonic()
        next(stream)
        stream.close()
        assert time.monotonic() - began < 5

    def test_invalid_max_workers(self):
        with pytest.raises(ValueError, match="max_workers"):
            Attacker(max_workers=0, client=_client(_ok))


class TestAttackWithAggregator:
    def test_concurrent_results_all_counted(self):
        codes = iter([200, 500] * 50)
        lock = threading.Lock()

        def handler(request):
            with lock:
                code = next(codes)
            return httpx.Response(code)

        aggregator = MetricsAggregator()
        attacker = Attacker(max_workers=8, client=_client(handler))
        targeter = StaticTargeter([Target("GET", "http://svc.test/")])

        plan = RatePlan(1, 1, 2, 0, phases=(Phase(100, 0.2), Phase(100, 0.2)))
        consumed = run_ramp(targeter, plan, attacker, aggregator, name="pair")

        snap = aggregator.snapshot()
        assert consumed == 40
        assert snap.requests == 40
        assert snap.status_codes["200"] + snap.status_codes["500"] == 40
        assert aggregator.errors() == ["500 Internal Server Error"]
