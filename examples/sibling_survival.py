"""
Example of adult mortality estimation from sibling histories with sibsurv
"""

import warnings
import pandas as pd
from sibsurv import (DirectEstimator, SamplingFrame, CompletenessSchedule,
                     BackgroundMortalityModel, SibshipSimulator, MALE, FEMALE)

# Simulate a survey where deaths are under-reported and large sibships
# have higher mortality
simulator = SibshipSimulator(
    n_mothers=8000,
    size_effect=0.05,
    frailty_variance=0.3,
    death_reporting_completeness=0.85,
    country="Simland",
    random_state=42
)

print("Simulating sibships...")
result = simulator.simulate()
histories = result.histories
print(f"Respondents: {histories.n_respondents}")
print(f"Reported siblings: {len(histories) - histories.n_respondents}")
print(f"Reported deaths: {histories.is_dead.sum()}")

true_rates = result.true_rates()

# Direct estimate, siblings only
direct = DirectEstimator().fit(histories)

# Gakidou-King weights with the DHS sampling frame and extrapolation
# to sibships with no survivors
with warnings.catch_warnings():
    warnings.simplefilter("ignore")
    weighted = DirectEstimator(
        weighting="gakidou_king",
        sampling_frame=SamplingFrame(),
        extrapolate=True
    ).fit(histories)

# Correction for omitted deaths
adjusted = DirectEstimator(
    weighting="gakidou_king",
    sampling_frame=SamplingFrame(),
    completeness=CompletenessSchedule([0], male=[0.85], female=[0.85])
).fit(histories)

comparison = true_rates[["sex", "age_group", "rate"]].rename(columns={"rate": "true"})
comparison["direct"] = direct.rates_["rate"].values
comparison["gk_extrapolated"] = weighted.rates_["rate"].values
comparison["adjusted"] = adjusted.rates_["rate"].values

pd.set_option("display.width", 120)
print("\nMortality rates per person-year:")
print(comparison.round(4).to_string(index=False))

print("\n45q15:")
for sex, label in [(MALE, "Males"), (FEMALE, "Females")]:
    print(f"{label}: direct={direct.adult_mortality(sex):.3f}, "
          f"adjusted={adjusted.adult_mortality(sex):.3f}")

# Background mortality from the Poisson regression
model = BackgroundMortalityModel(hiv_prevalence={"Simland": 0.005})
model.fit(histories)
print("\nPoisson regression coefficients:")
print(model.coefficients_.round(3).to_string())
print(f"Male 45q15 (Poisson): {model.adult_mortality(sex=MALE, country='Simland'):.3f}")
