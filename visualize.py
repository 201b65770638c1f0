# visualize.py
import os
import matplotlib.pyplot as plt


def _ensure_dir(outpath):
    directory = os.path.dirname(outpath)
    if directory:
        os.makedirs(directory, exist_ok=True)


def plot_miss_rate_by_config(results, outpath):
    _ensure_dir(outpath)
    labels = [r["label"] for r in results]
    positions = range(len(results))
    fig, ax1 = plt.subplots(figsize=(8, 4))
    ax1.bar(positions, [r["miss_rate"] for r in results], color="tab:blue")
    ax1.set_ylabel("Miss rate")
    ax1.set_xticks(list(positions))
    ax1.set_xticklabels(labels, rotation=30, ha="right")
    # AAT shares the x axis on its own scale
    ax2 = ax1.twinx()
    ax2.plot(list(positions), [r["avg_access_time"] for r in results], color="tab:red", marker="o")
    ax2.set_ylabel("Average access time (cycles)")
    ax1.set_title("Miss Rate and AAT by Configuration")
    ax1.grid(True, axis="y")
    fig.tight_layout()
    fig.savefig(outpath)
    plt.close(fig)
    return outpath


def plot_hit_miss_rate(miss_rate, outpath):
    _ensure_dir(outpath)
    plt.figure(figsize=(4,4))
    labels = ['Hit', 'Miss']
    sizes = [1.0 - miss_rate, miss_rate]
    plt.pie(sizes, labels=labels, autopct='%1.1f%%')
    plt.title("Combined Hit/Miss Rate")
    plt.tight_layout()
    plt.savefig(outpath)
    plt.close()
    return outpath
