"""
report_utils.py
-----------------------------------
Helper functions for path management, console sections, and run logging.
"""

import sys
from contextlib import contextmanager
from pathlib import Path

import matplotlib.pyplot as plt
import seaborn as sns

# Set style
sns.set_style("whitegrid")
plt.rcParams['figure.dpi'] = 100
plt.rcParams['savefig.dpi'] = 300


# -------------------------
# PATH MANAGEMENT
# -------------------------
def get_base_dir() -> Path:
    """Get base directory (parent of scripts/)."""
    return Path(__file__).resolve().parent.parent


def get_output_dir(base_dir: Path = None) -> Path:
    """Get segmentation output directory, creating it if needed."""
    base_dir = base_dir or get_base_dir()
    output_dir = Path(base_dir) / "output" / "segmentation"
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


# -------------------------
# CONSOLE OUTPUT
# -------------------------
def print_section(title: str) -> None:
    """Print a stage banner."""
    print("\n" + "="*60)
    print(title.upper())
    print("="*60)


@contextmanager
def pipeline_stage(name: str, title: str = None):
    """
    Run one pipeline stage under a banner.

    Any error escaping the stage is reported with the stage name, then re-raised.
    """
    print_section(title or name)
    try:
        yield
    except Exception as err:
        print(f"\n❌ Stage '{name}' failed: {err}")
        raise


def save_figure(save_path=None, label="plot"):
    """Save the current figure if a path is given, otherwise show it."""
    if save_path:
        plt.savefig(save_path, bbox_inches='tight', dpi=300)
        print(f"✅ Saved {label} to: {save_path}")
    else:
        plt.show()
    plt.close()


# -------------------------
# LOGGING SETUP
# -------------------------
class TeeOutput:
    """Capture console output and write it to a log file at the same time."""

    def __init__(self, file_path):
        self.terminal = sys.stdout
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)
        self.log_file = open(file_path, 'w', encoding='utf-8')

    def write(self, message):
        self.terminal.write(message)
        self.log_file.write(message)
        self.log_file.flush()

    def flush(self):
        self.terminal.flush()
        self.log_file.flush()

    def close(self):
        self.log_file.close()

    def __enter__(self):
        sys.stdout = self
        return self

    def __exit__(self, exc_type, exc, tb):
        sys.stdout = self.terminal
        self.close()
        return False
