#!/usr/bin/env python3

# Copyright (c) Facebook, Inc. and its affiliates.

import argparse
import logging
import sys
from pathlib import Path

import numpy as np
import pandas as pd

from expert_bias import ExpertBiasModel
from simulator import TRUE_PARAMETERS, simulate_case_study


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description=(
            "Fit the expert bias model on simulated known species and predict "
            "utilization of the unknown species."
        )
    )
    parser.add_argument(
        "--seed", type=int, default=1, help="seeds simulation and sampling"
    )
    parser.add_argument("--chains", type=int, default=4)
    parser.add_argument(
        "--iterations", type=int, default=5000, help="per chain, incl. warmup"
    )
    parser.add_argument(
        "--n-jobs",
        type=int,
        default=None,
        help="parallel chains (default: one per chain)",
    )
    parser.add_argument(
        "--ci", type=float, default=0.9, help="credible interval width"
    )
    parser.add_argument(
        "--out", type=Path, default=Path("report"), help="output directory"
    )
    parser.add_argument(
        "--save-draws", action="store_true", help="also write all posterior draws"
    )
    args = parser.parse_args(argv)
    if not 0 < args.ci < 1:
        parser.error(f"--ci must be in (0, 1), got {args.ci}")
    return args


def run(args) -> pd.DataFrame:
    sim_seed, fit_seed, predict_seed = np.random.SeedSequence(args.seed).spawn(3)

    data = simulate_case_study(seed=np.random.default_rng(sim_seed))
    model = ExpertBiasModel(
        chains=args.chains, iterations=args.iterations, n_jobs=args.n_jobs
    )
    samples = model.fit(data.known_opinions, data.known_utilizations, seed=fit_seed)

    summary = samples.summary(args.ci)
    for name in ("alpha", "phi", "sigma_x", "sigma_s"):
        row = summary.loc[name]
        logger.info(
            f"  {name} = {row['mean']:.4g} [{row['lower']:.4g}, {row['upper']:.4g}] "
            f"(true {TRUE_PARAMETERS[name]}, r_hat {row['r_hat']:.3f})"
        )

    prediction = model.predict(
        data.unknown_opinions, seed=np.random.default_rng(predict_seed), ci=args.ci
    )
    report = prediction.summary.merge(
        data.unknown_utilizations.rename(columns={"utilization": "true_utilization"}),
        on="species",
    )
    for _, r in report.iterrows():
        logger.info(
            f"  {r['species']}: opinion {r['mean_opinion']:.5f} -> "
            f"{r['mean']:.5f} [{r['lower']:.5f}, {r['upper']:.5f}], "
            f"true {r['true_utilization']:.5f}"
        )

    args.out.mkdir(parents=True, exist_ok=True)
    summary.to_csv(args.out / "posterior_summary.csv", index_label="parameter")
    report.to_csv(args.out / "predictions.csv", index=False)
    if args.save_draws:
        samples.to_frame().to_csv(args.out / "posterior_draws.csv", index=False)
    logger.info(f"Saved report to {args.out}")
    return report


def main(argv=None):
    run(parse_args(argv))
    return 0


if __name__ == "__main__":
    sys.exit(main())
