# -*- coding: utf-8 -*-
"""
Stable isotopes (δ13C, δ18O) of giant clam shells: inner vs. outer layer.

Replicates the descriptive statistics, one-way ANOVAs, Tukey HSD and
boxplots of the shell isotope study from a single CSV export.
"""

# ======= Standard header / 标准头部元信息 =======
__affil__    = "Giant clam isotope project"
__status__   = "isotopes/notebook1"
__license__  = "For research use only"
__version__  = "0.1.0"
__date__     = "2026-10-17"

# ======= Imports / 导入常用库 =======
import os                # File & path utilities / 文件与路径工具
import argparse          # CLI arguments / 命令行参数
import itertools
import numpy as np       # Numerics / 数值计算
import pandas as pd      # DataFrames / 表格数据处理
import matplotlib.pyplot as plt
from matplotlib.patches import Patch
from scipy import stats
import seaborn as sns
import statsmodels.api as sm
from statsmodels.formula.api import ols
from statsmodels.stats.multicomp import pairwise_tukeyhsd

# 原始数据（csv）与结果目录；命令行 --data / --out 可覆盖
DATA_PATH = os.path.join("data", "giant_clam_isotopes.csv")
OUT_DIR   = "results"

# 海水 δ18O 参考值 (‰ VSMOW)
SEAWATER_D18O = 1.53

REQUIRED_COLUMNS = ["species", "layer", "d13C", "d18O"]
SPECIES_ORDER = ["squamosina", "squamosa", "maxima"]
UNDETERMINED  = "undetermined"
LAYER_ORDER   = ["outer", "inner"]
VARIABLES     = ["d13C", "d18O", "temperature"]
LAYER_COLORS  = {"outer": "#E69F00", "inner": "#56B4E9"}
ALPHA = 0.05


class ClamAnalysisError(Exception):
    """Base class for errors raised by the isotope pipeline."""


class DataFormatError(ClamAnalysisError):
    """Input table is missing required columns or holds unusable values."""


class EmptySubsetError(ClamAnalysisError):
    """A named subset has no records, so mean/sd are undefined."""

    def __init__(self, subset):
        self.subset = subset
        super().__init__(f"subset '{subset}' contains no records")


class InsufficientGroupsError(ClamAnalysisError):
    """ANOVA / Tukey requested with fewer than two groups."""


def species_label(species: str) -> str:
    return f"T. {species}"


# ======= 1) Loader / 读取数据 =======
def load_samples(path) -> pd.DataFrame:
    # 列按名字绑定（不是位置）；额外的描述性列原样保留
    try:
        with open(path, encoding="utf-8", newline="") as fh:
            df = pd.read_csv(fh)
    except pd.errors.ParserError as err:
        raise DataFormatError(f"{path}: malformed row ({err})") from err
    except pd.errors.EmptyDataError as err:
        raise DataFormatError(f"{path}: file is empty ({err})") from err
    except UnicodeDecodeError as err:
        raise DataFormatError(f"{path}: not valid UTF-8 ({err})") from err

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise DataFormatError(f"{path}: missing required column(s) {missing}")

    for col in ("d13C", "d18O"):
        values = pd.to_numeric(df[col], errors="coerce")
        blank = df[col].isna()
        if blank.any():
            row = blank.idxmax()
            raise DataFormatError(f"{path}: missing value in column '{col}' (row {row})")
        bad = values.isna()
        if bad.any():
            row = bad.idxmax()
            raise DataFormatError(
                f"{path}: non-numeric value {df.at[row, col]!r} in column '{col}' (row {row})")
        df[col] = values

    bad_layer = ~df["layer"].isin(LAYER_ORDER)
    if bad_layer.any():
        row = bad_layer.idxmax()
        raise DataFormatError(
            f"{path}: layer must be one of {LAYER_ORDER}, got {df.at[row, 'layer']!r} (row {row})")
    return df


# ======= 2) Temperature / δ18O → 温度 =======
def derive_temperature(df: pd.DataFrame, seawater: float = SEAWATER_D18O) -> pd.DataFrame:
    """Return a copy of ``df`` with a ``temperature`` column (°C).

    T = 20.19 - 4.56 * (δ18O - C) + 0.19 * (δ18O - C), with C the seawater
    reference value. The expression is kept exactly as used for the
    published figures, both terms on the same (δ18O - C).
    """
    out = df.copy()                                      # 复制一份，避免修改原数据
    delta = out["d18O"] - seawater
    out["temperature"] = 20.19 - 4.56 * delta + 0.19 * delta
    return out


# ======= 3a) Descriptive summary / 描述统计 =======
def build_subsets(df: pd.DataFrame) -> dict:
    # {layer} × {all specimens, 各个种}；undetermined 只进 "all specimens"
    subsets = {}
    for layer in LAYER_ORDER:
        layer_df = df[df["layer"] == layer]
        subsets[f"{layer}, all specimens"] = layer_df
        for sp in SPECIES_ORDER:
            subsets[f"{layer}, {species_label(sp)}"] = layer_df[layer_df["species"] == sp]
    return subsets


def summarize_subsets(df: pd.DataFrame, variables=VARIABLES) -> pd.DataFrame:
    rows = []
    for name, sub in build_subsets(df).items():
        if sub.empty:
            raise EmptySubsetError(name)
        for var in variables:
            rows.append({"dataset": name,
                         "n": int(len(sub)),
                         "variable": var,
                         "mean": float(sub[var].mean()),
                         "sd": float(sub[var].std(ddof=1))})   # n=1 → NaN
    return pd.DataFrame(rows, columns=["dataset", "n", "variable", "mean", "sd"])


# ======= 3b) Inferential statistics / ANOVA + Tukey =======
def determined_species(df: pd.DataFrame) -> pd.DataFrame:
    return df[df["species"] != UNDETERMINED]


def anova_input(df: pd.DataFrame) -> pd.DataFrame:
    # 只用外层 + 已鉴定种
    return determined_species(df[df["layer"] == "outer"])


def _check_groups(df: pd.DataFrame, variable: str):
    n_groups = df["species"].nunique()
    if n_groups < 2:
        raise InsufficientGroupsError(
            f"{variable}: need at least two species groups, found {n_groups}")


def one_way_anova(df: pd.DataFrame, variable: str) -> pd.DataFrame:
    """One-way ANOVA of ``variable`` against species.

    Rows ``C(species)`` and ``Residual``; columns df, sum_sq, mean_sq, F, PR(>F).
    """
    _check_groups(df, variable)
    model = ols(f"{variable} ~ C(species)", data=df).fit()
    return sm.stats.anova_lm(model, typ=1)


def tukey_hsd(df: pd.DataFrame, variable: str, alpha: float = ALPHA) -> pd.DataFrame:
    _check_groups(df, variable)
    res = pairwise_tukeyhsd(endog=df[variable].to_numpy(dtype=float),
                            groups=df["species"].to_numpy(), alpha=alpha)
    # 不用 summary()：它会四舍五入到 4 位
    pairs = list(itertools.combinations(res.groupsunique, 2))
    return pd.DataFrame({
        "group1": [str(a) for a, _ in pairs],
        "group2": [str(b) for _, b in pairs],
        "meandiff": np.asarray(res.meandiffs, dtype=float),
        "p-adj": np.asarray(res.pvalues, dtype=float),
        "lower": np.asarray(res.confint, dtype=float)[:, 0],
        "upper": np.asarray(res.confint, dtype=float)[:, 1],
        "reject": np.asarray(res.reject, dtype=bool),
    })


def tukey_pair_diff(table: pd.DataFrame, a: str, b: str) -> float:
    """Signed difference mean(b) - mean(a), whichever way the pair is stored."""
    hit = table[(table["group1"] == a) & (table["group2"] == b)]
    if not hit.empty:
        return float(hit["meandiff"].iloc[0])
    hit = table[(table["group1"] == b) & (table["group2"] == a)]
    if not hit.empty:
        return -float(hit["meandiff"].iloc[0])
    raise KeyError(f"no Tukey comparison for {a!r} vs {b!r}")


def assumption_checks(df: pd.DataFrame, variables=("temperature", "d13C")) -> pd.DataFrame:
    # 正态性（Shapiro-Wilk，逐组）+ 方差齐性（Levene）
    rows = []
    for var in variables:
        _check_groups(df, var)
        groups = []
        for sp, g in df.groupby("species", sort=True):
            x = g[var].to_numpy(dtype=float)
            groups.append(x)
            if len(x) < 3:
                print(f"[WARN] Shapiro-Wilk skipped for {var}, {species_label(sp)}: n={len(x)} < 3")
                W, p = np.nan, np.nan
            else:
                W, p = stats.shapiro(x)
            rows.append({"variable": var, "test": "shapiro", "group": sp,
                         "n": len(x), "statistic": float(W), "p_value": float(p)})
        stat, p = stats.levene(*groups, center="median")
        rows.append({"variable": var, "test": "levene", "group": "all",
                     "n": int(sum(len(x) for x in groups)),
                     "statistic": float(stat), "p_value": float(p)})
    return pd.DataFrame(rows, columns=["variable", "test", "group", "n", "statistic", "p_value"])


# ======= 4) Plots / 箱线图 =======
def plot_layer_boxplot(df: pd.DataFrame, variable: str, ylabel: str, ax=None):
    """Boxplot of ``variable`` by species (x) and layer (hue), samples overlaid."""
    if ax is None:
        _, ax = plt.subplots(figsize=(7, 4.5))

    data = determined_species(df)
    present = set(data["species"])
    order = [s for s in SPECIES_ORDER if s in present] + sorted(present - set(SPECIES_ORDER))

    sns.boxplot(data=data, x="species", y=variable, hue="layer",
                order=order, hue_order=LAYER_ORDER, palette=LAYER_COLORS,
                showfliers=False, width=0.7, linewidth=1.0, ax=ax)
    # 单个样本点，dodge 让内外层的点分开
    sns.stripplot(data=data, x="species", y=variable, hue="layer",
                  order=order, hue_order=LAYER_ORDER,
                  palette={layer: "0.2" for layer in LAYER_ORDER},
                  dodge=True, jitter=0.12, size=3.5, alpha=0.8, ax=ax)

    ax.set_xticks(range(len(order)))
    ax.set_xticklabels([species_label(s) for s in order], fontstyle="italic", fontsize=11)
    ax.set_xlabel("")
    ax.set_ylabel(ylabel, fontsize=12)
    ax.tick_params(axis="y", labelsize=10)
    ax.grid(True, axis="y", alpha=0.3)
    ax.set_axisbelow(True)
    if ax.get_legend() is not None:
        ax.get_legend().remove()
    return ax


def plot_composite(df: pd.DataFrame):
    # 上：温度；下：δ13C；图例放底部，无标题
    fig, axes = plt.subplots(2, 1, figsize=(7, 9))
    plot_layer_boxplot(df, "temperature", "Temperature (°C)", ax=axes[0])
    plot_layer_boxplot(df, "d13C", "δ$^{13}$C (‰ VPDB)", ax=axes[1])

    handles = [Patch(facecolor=LAYER_COLORS[layer], edgecolor="0.2", label=layer)
               for layer in LAYER_ORDER]
    fig.legend(handles=handles, loc="lower center", ncol=len(handles),
               frameon=False, fontsize=11)
    fig.tight_layout(rect=[0, 0.05, 1, 1])
    return fig


# ======= 5) Pipeline / 主流程 =======
def _banner(title):
    print(f"\n=== {title} ===\n")


def write_outputs(results: dict, out_dir: str):
    os.makedirs(out_dir, exist_ok=True)
    results["summary"].to_csv(os.path.join(out_dir, "summary_by_dataset.csv"), index=False)
    results["anova_temperature"].to_csv(os.path.join(out_dir, "anova_temperature.csv"))
    results["anova_d13C"].to_csv(os.path.join(out_dir, "anova_d13C.csv"))
    results["tukey_temperature"].to_csv(os.path.join(out_dir, "tukey_temperature.csv"), index=False)
    results["assumptions"].to_csv(os.path.join(out_dir, "assumption_checks.csv"), index=False)
    results["figure"].savefig(os.path.join(out_dir, "boxplots_temperature_d13C.png"), dpi=300)


def run_pipeline(data_path: str = DATA_PATH, out_dir: str = OUT_DIR, show: bool = False) -> dict:
    df = derive_temperature(load_samples(data_path))
    print(f"Loaded {len(df)} records from {data_path}")

    summary = summarize_subsets(df)
    _banner("Mean ± SD by dataset")
    print(summary.to_string(index=False, float_format=lambda v: f"{v:.2f}"))

    outer = anova_input(df)
    anova_temp = one_way_anova(outer, "temperature")
    _banner("One-way ANOVA: temperature ~ species (outer layer)")
    print(anova_temp.to_string())

    tukey_temp = tukey_hsd(outer, "temperature")
    _banner("Tukey HSD: temperature (outer layer)")
    print(tukey_temp.to_string(index=False))

    anova_c = one_way_anova(outer, "d13C")
    _banner("One-way ANOVA: d13C ~ species (outer layer)")
    print(anova_c.to_string())

    _banner("ANOVA assumptions (Shapiro-Wilk / Levene)")
    assumptions = assumption_checks(outer)
    print(assumptions.to_string(index=False))

    fig = plot_composite(df)
    results = {
        "data": df,
        "summary": summary,
        "anova_temperature": anova_temp,
        "tukey_temperature": tukey_temp,
        "anova_d13C": anova_c,
        "assumptions": assumptions,
        "figure": fig,
    }
    write_outputs(results, out_dir)
    print(f"\nResults written to {out_dir}")
    if show:
        plt.show()
    else:
        plt.close(fig)                                   # 已保存；不显示就关闭
    return results


def main(argv=None):
    parser = argparse.ArgumentParser(description="Giant clam shell isotope statistics and boxplots")
    parser.add_argument("--data", default=DATA_PATH, help="input CSV (default: %(default)s)")
    parser.add_argument("--out", default=OUT_DIR, help="output directory (default: %(default)s)")
    parser.add_argument("--show", action="store_true", help="show the figure after saving")
    args = parser.parse_args(argv)
    run_pipeline(args.data, args.out, show=args.show)


if __name__ == "__main__":
    main()
