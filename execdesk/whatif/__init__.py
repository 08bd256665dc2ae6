"""
What-if scenario simulation.

USAGE:
    from execdesk.whatif import (
        SimulationParameters,
        RandomFillSynthesizer,
        simulate_scenario,
        compare_scenarios,
    )

    baseline = simulate_scenario("S1", fills, cancels, rejects, samples)
    capped = simulate_scenario(
        "S1", fills, cancels, rejects, samples,
        SimulationParameters(max_position_size=100, order_timeout_ms=5000),
    )
    result = compare_scenarios([baseline, capped])
    print(result.comparison[1].pnl_diff)
"""

from execdesk.whatif.simulator import (
    SimulationParameters,
    WhatIfScenario,
    ScenarioDiff,
    ScenarioComparison,
    FillSynthesizer,
    RandomFillSynthesizer,
    WhatIfSimulator,
    apply_position_limit,
    apply_order_timeout,
    apply_min_fill_rate,
    apply_max_latency,
    fill_shortfall,
    scenario_name,
    simulate_scenario,
    compare_scenarios,
)

__all__ = [
    "SimulationParameters",
    "WhatIfScenario",
    "ScenarioDiff",
    "ScenarioComparison",
    "FillSynthesizer",
    "RandomFillSynthesizer",
    "WhatIfSimulator",
    "apply_position_limit",
    "apply_order_timeout",
    "apply_min_fill_rate",
    "apply_max_latency",
    "fill_shortfall",
    "scenario_name",
    "simulate_scenario",
    "compare_scenarios",
]
