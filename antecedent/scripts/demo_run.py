"""Example script comparing antecedent lag structures on simulated data."""

from __future__ import annotations

import logging

import numpy as np

from antecedent import (
    SamplerSettings,
    compare_configurations,
    cumulative_monthly_weight,
    grouped_partition,
    memory_length,
    monthly_partition,
    simulate_store,
    yearly_weight_decomposition,
)
from antecedent.antecedent.config import config_from_partition


def main(seed: int = 123) -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    # --- 1) Simulate a site whose NPP follows last year's wet season --------
    true_block = grouped_partition((3, 12))  # seasons in lag year 1, one block in lag year 2
    true_weights = np.array([0.05, 0.1, 0.45, 0.3, 0.1])
    store, truth = simulate_store(
        n_years=30,
        block=true_block,
        weights=true_weights,
        intercept=120.0,
        alpha_antecedent=1.5,
        alpha_event=(0.0, 0.05, 0.1, 0.0),
        noise_sd=5.0,
        missing_years=(1995,),
        extra_history=1,
        seed=seed,
    )
    print(f"Simulated {store.n_years} target years; true weights {truth.weights}")

    # --- 2) Candidate configurations ----------------------------------------
    sampler = SamplerSettings(samples=300, burn=200, n_adapt=200, n_chains=2, seed=seed)
    configs = [
        config_from_partition(monthly_partition(1), sampler=sampler),
        config_from_partition(grouped_partition((3,)), sampler=sampler),
        config_from_partition(grouped_partition((3, 12)), sampler=sampler),
        config_from_partition(grouped_partition((3, 6, 12)), sampler=sampler),
    ]

    # --- 3) Sample every configuration in both modes ------------------------
    comparison = compare_configurations(store, configs, modes=("prior", "posterior"))
    print(comparison.table.to_string(index=False))

    best = comparison.best("posterior")
    if best is None or best.summary is None:
        print("No configuration produced a reliable posterior fit.")
        return
    print(f"Best posterior configuration: {best.name} (R² = {best.r2:.3f})")

    # --- 4) Memory curves of the best configuration -------------------------
    print(yearly_weight_decomposition(best.summary).to_string(index=False))
    cumulative = cumulative_monthly_weight(best.summary)
    print(cumulative.head(12).to_string(index=False))
    memory = memory_length(cumulative, threshold=0.9)
    print(
        "Months needed for 90% of the weight:",
        f"point={memory.point}",
        f"earliest={memory.upper_bound}",
        f"latest={memory.lower_bound}",
    )


if __name__ == "__main__":
    main()
