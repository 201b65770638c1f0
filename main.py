# main.py
import argparse
import json
import logging
import os
import sys

from benchmark import CACHE_KEYS, BenchmarkRunner
from cache import ConfigurationError
from simulator import setup
from stats import format_statistics
from tracefile import load_trace, run_trace
from visualize import plot_hit_miss_rate, plot_miss_rate_by_config

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    "cache": {"c": 15, "b": 5, "s": 3, "v": 2, "storage_policy": "B", "replacement_policy": "L"},
    "benchmark": {},
    "output": {},
}


def load_config(path="config.json"):
    with open(path, "r") as f:
        cfg = json.load(f)
    for section, values in DEFAULT_CONFIG.items():
        merged = dict(values)
        merged.update(cfg.get(section, {}))
        cfg[section] = merged
    return cfg


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Set-associative cache simulator with a victim buffer")
    p.add_argument("-c", type=int, help="Total data storage is 2^C bytes")
    p.add_argument("-b", type=int, help="Each line holds 2^B bytes")
    p.add_argument("-s", type=int, help="Each set holds 2^S lines")
    p.add_argument("-v", type=int, help="The victim buffer holds 2^V lines")
    p.add_argument("-S", "--storage", dest="storage_policy", help="Storage policy: B (blocking) or S (sub-blocking)")
    p.add_argument("-R", "--replacement", dest="replacement_policy", help="Replacement policy: L (LRU) or N (NMRU-FIFO)")
    p.add_argument("-i", "--trace", default="-", help="Trace file of '<r|w> <hex address>' lines (default: stdin)")
    p.add_argument("--config", default=None, help="JSON configuration file (default: config.json when present)")
    p.add_argument("--benchmark", action="store_true", help="Run the synthetic configuration sweep instead of a trace")
    p.add_argument("--plot", action="store_true", help="Save plots under the output directory")
    p.add_argument("-q", "--quiet", action="store_true", help="Only print errors")
    p.add_argument("--verbose", action="store_true", help="Log every access decision")
    return p.parse_args(argv)


def build_config(args):
    if args.config:
        cfg = load_config(args.config)
    elif os.path.exists("config.json"):
        cfg = load_config("config.json")
    else:
        cfg = json.loads(json.dumps(DEFAULT_CONFIG))
    for key in ("c", "b", "s", "v", "storage_policy", "replacement_policy"):
        value = getattr(args, key)
        if value is not None:
            cfg["cache"][key] = value
    return cfg


def run_benchmark(cfg, plot=False, quiet=False):
    runner = BenchmarkRunner(cfg)
    if not quiet:
        print("Starting benchmark with config:", cfg["benchmark"])
    summary, results = runner.run()
    results_path = runner.save_results(summary, results, cfg["output"])
    if not quiet:
        print("Benchmark Summary:", summary)
        for result in results:
            print(f"  {result['label']}: miss rate {result['miss_rate']:.4f}, AAT {result['avg_access_time']:.3f}")
        print("Results saved to:", results_path)
    if plot:
        results_dir = cfg["output"].get("results_dir", "results")
        plot_miss_rate_by_config(results, cfg["output"].get("miss_rate_plot", os.path.join(results_dir, "miss_rate_by_config.png")))
    return summary, results


def run_simulation(cfg, trace_path, plot=False, quiet=False):
    simulator = setup(**{key: cfg["cache"][key] for key in CACHE_KEYS})
    stats = run_trace(simulator, load_trace(trace_path))
    if not quiet:
        print(format_statistics(stats))
    if plot:
        results_dir = cfg["output"].get("results_dir", "results")
        plot_hit_miss_rate(stats.miss_rate, cfg["output"].get("hitmiss_plot", os.path.join(results_dir, "hit_miss_rate.png")))
    return stats


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='%(levelname)s: %(message)s')
    try:
        cfg = build_config(args)
        if args.benchmark:
            run_benchmark(cfg, plot=args.plot, quiet=args.quiet)
        else:
            run_simulation(cfg, args.trace, plot=args.plot, quiet=args.quiet)
    except ConfigurationError as exc:
        logger.error("Invalid cache configuration: %s", exc)
        return 1
    except FileNotFoundError as exc:
        logger.error("File not found: %s", exc.filename)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
