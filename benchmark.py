# benchmark.py
import json
import logging
import os
import threading
import time

import numpy as np

from cache import CacheConfiguration, Operation, ReplacementPolicy, StoragePolicy
from simulator import Simulator
from tracefile import run_trace

logger = logging.getLogger(__name__)

CACHE_KEYS = ("c", "b", "s", "v", "storage_policy", "replacement_policy")


def default_sweep():
    """Every storage/replacement policy pairing on the base geometry."""
    return [{"storage_policy": st.value, "replacement_policy": r.value}
            for st in StoragePolicy for r in ReplacementPolicy]


def config_label(config):
    return (f"c{config.c} b{config.b} s{config.s} v{config.v} "
            f"{config.storage_policy.value}/{config.replacement_policy.value}")


class TraceGenerator:
    """
    Synthetic reference stream over a working set of `num_blocks` lines.
    Patterns: sequential, random, or mixed (mostly sequential with some random).
    """

    def __init__(self, rng, num_blocks, line_bytes, access_pattern="mixed", read_ratio=0.8):
        self.rng = rng
        self.num_blocks = max(1, num_blocks)
        self.line_bytes = line_bytes
        self.access_pattern = access_pattern
        self.read_ratio = read_ratio
        self._seq_ptr = 0

    def _next_block(self):
        if self.access_pattern == "sequential":
            return self._sequential()
        elif self.access_pattern == "random":
            return int(self.rng.integers(0, self.num_blocks))
        else:  # mixed
            if self.rng.random() < 0.8:
                return self._sequential()
            return int(self.rng.integers(0, self.num_blocks))

    def _sequential(self):
        block = self._seq_ptr
        self._seq_ptr = (block + 1) % self.num_blocks
        return block

    def generate(self, num_requests):
        offsets = self.rng.integers(0, self.line_bytes, size=num_requests)
        reads = self.rng.random(num_requests) < self.read_ratio
        trace = []
        for offset, is_read in zip(offsets, reads):
            address = self._next_block() * self.line_bytes + int(offset)
            trace.append((Operation.READ if is_read else Operation.WRITE, address))
        return trace


class BenchmarkRunner:
    def __init__(self, cfg):
        self.cfg = cfg
        bench = cfg.get("benchmark", {})
        self.rng = np.random.default_rng(bench.get("random_seed", None))
        self.base = {key: cfg.get("cache", {})[key] for key in CACHE_KEYS if key in cfg.get("cache", {})}
        self.base_config = CacheConfiguration(**self.base)

        # validate the whole sweep up front so worker threads never see a bad config
        self.configs = []
        for overrides in bench.get("sweep") or default_sweep():
            params = dict(self.base)
            params.update(overrides)
            self.configs.append(CacheConfiguration(**params))

        self.working_set_kb = bench.get("working_set_kb", 1024)
        self.line_size = self.base_config.line_bytes
        self.num_blocks = max(1, (self.working_set_kb * 1024) // self.line_size)
        self.num_requests = bench.get("num_requests", 10000)
        self.num_threads = max(1, bench.get("num_threads", 4))
        self.read_ratio = bench.get("read_ratio", 0.8)
        self.access_pattern = bench.get("access_pattern", "mixed")
        self.results_lock = threading.Lock()
        self.results = []

    def generate_trace(self):
        generator = TraceGenerator(self.rng, self.num_blocks, self.line_size,
                                   self.access_pattern, self.read_ratio)
        return generator.generate(self.num_requests)

    def _worker(self, jobs, trace):
        local_results = []
        for position, config in jobs:
            stats = run_trace(Simulator(config), trace)
            result = {"label": config_label(config), "position": position}
            result.update({key: getattr(config, key) for key in ("c", "b", "s", "v")})
            result["storage_policy"] = config.storage_policy.value
            result["replacement_policy"] = config.replacement_policy.value
            result.update(stats.as_dict())
            local_results.append(result)
            logger.debug("%s: miss rate %.4f", result["label"], stats.miss_rate)

        with self.results_lock:
            self.results.extend(local_results)

    def run(self):
        trace = self.generate_trace()
        self.results = []
        jobs = list(enumerate(self.configs))
        threads = []
        start = time.time()
        for n in range(min(self.num_threads, len(jobs))):
            t = threading.Thread(target=self._worker, args=(jobs[n::self.num_threads], trace))
            t.start()
            threads.append(t)
        for t in threads:
            t.join()
        end = time.time()

        results = sorted(self.results, key=lambda r: r["position"])
        for result in results:
            del result["position"]
        best = min(results, key=lambda r: r["avg_access_time"]) if results else None
        summary = {
            "total_requests": len(trace),
            "access_pattern": self.access_pattern,
            "read_ratio": self.read_ratio,
            "working_set_kb": self.working_set_kb,
            "best_config": best["label"] if best else None,
            "duration_s": end - start,
        }
        return summary, results

    def save_results(self, summary, results, out_cfg):
        results_dir = out_cfg.get("results_dir", "results")
        os.makedirs(results_dir, exist_ok=True)
        path = os.path.join(results_dir, out_cfg.get("results_file", "results.json"))
        with open(path, "w") as f:
            json.dump({"summary": summary, "results": results}, f, indent=2)
        return path
