import argparse
import logging
import sys
from datetime import date
import numpy as np
import matplotlib.pyplot as plt
from autocall_engine.base import MarketInputs, ContractTerms, ObservationWindow, TerminalRule
from autocall_engine.curves import ZeroCurve, FlatCurve, BlackVarianceSurface
from autocall_engine.sde import ModelKind
from autocall_engine.simulation import AutocallableSimulation
from autocall_engine.config import SimulationSettings
from autocall_engine.errors import ConfigurationError

SETTLEMENT=date(2017, 4, 4)


def year_fraction(d: date) -> float:
    """Actual/365 Fixed from the settlement date"""
    return (d-SETTLEMENT).days/365.0


def build_market() -> MarketInputs:
    """
    Ready-made term structures for the 31 March 2017 pricing date.
    Curve bootstrapping is outside the engine: pillars are given as zero rates.
    """
    pillars=[0.25, 0.5, 1.0, 2.0, 3.0, 5.0]
    ois_rates=[-0.0036, -0.0034, -0.0031, -0.0022, -0.0010, 0.0016]
    #Issuer curve: OIS plus a term credit spread
    bond_rates=np.array(ois_rates)+np.array([0.0020, 0.0025, 0.0035, 0.0055, 0.0075, 0.0105])

    #Vol grid (expiry x strike), mild downside skew
    maturities=[1.0, 2.0, 3.0, 4.0, 5.0]
    strikes=[10.0, 12.5, 15.0, 17.5, 20.0]
    vols=[[0.36, 0.32, 0.29, 0.27, 0.26],
          [0.34, 0.31, 0.28, 0.265, 0.255],
          [0.33, 0.30, 0.275, 0.26, 0.25],
          [0.32, 0.295, 0.27, 0.255, 0.245],
          [0.315, 0.29, 0.265, 0.25, 0.24]]

    return MarketInputs(spot=15.35,
                        discount_curve=ZeroCurve(pillars, ois_rates),
                        dividend_curve=FlatCurve(0.038),
                        bond_curve=ZeroCurve(pillars, bond_rates),
                        volatility=BlackVarianceSurface(maturities, strikes, vols))


def build_contract() -> ContractTerms:
    """Three yearly call windows at the strike, then a terminal barrier at the strike."""
    strike=15.08
    windows=[
        ObservationWindow(year_fraction(date(2018, 2, 21)), year_fraction(date(2018, 2, 27)), strike, 52.5),
        ObservationWindow(year_fraction(date(2019, 2, 20)), year_fraction(date(2019, 2, 26)), strike, 105.0),
        ObservationWindow(year_fraction(date(2020, 2, 20)), year_fraction(date(2020, 2, 26)), strike, 157.5),
    ]
    terminal=TerminalRule(barrier_time=year_fraction(date(2021, 3, 1)), barrier=strike, coupon=210.0)
    return ContractTerms(strike=strike, notional=1000.0, settlement_date=SETTLEMENT,
                         maturity=year_fraction(date(2021, 3, 3)), windows=windows, terminal=terminal)


def prompt_model(read=input) -> ModelKind:
    """Asks for a model letter until a valid one is given."""
    while True:
        answer=read("Choose the pricing model:\n   B) Black-Scholes\n   H) Heston\n> ")
        try:
            return ModelKind.parse(answer)
        except ConfigurationError:
            print("\nNot a valid choice, please try again.\n")


def plot_convergence(history: np.ndarray, reference: float, kind: ModelKind) -> None:
    n, price, se=history[:, 0], history[:, 1], history[:, 2]

    fig, ax=plt.subplots(figsize=(10, 6))
    ax.plot(n, price, color='navy', linewidth=2, marker='o', label='Running estimate')
    ax.fill_between(n, price-2.0*se, price+2.0*se, color='navy', alpha=0.15, label=r'$\pm 2$ standard errors')
    ax.axhline(y=reference, color='black', linestyle='--', label=f'Quotation ({reference})')
    ax.set_xlabel('Samples')
    ax.set_ylabel('Price')
    ax.set_title(f'Monte Carlo convergence ({kind.name.lower()} model)')
    ax.grid(True, alpha=0.4)
    ax.legend()

    plt.tight_layout()
    plt.show()


def parse_args(argv=None) -> argparse.Namespace:
    parser=argparse.ArgumentParser(description="Monte Carlo price of an autocallable investment certificate")
    parser.add_argument("--model", choices=["B", "H", "b", "h"], help="B=Black-Scholes, H=Heston (prompted if omitted)")
    parser.add_argument("--steps", type=int, help="time steps up to maturity")
    parser.add_argument("--samples", type=int, help="Monte Carlo samples")
    parser.add_argument("--seed", type=int, help="random seed")
    parser.add_argument("--sobol", action="store_true", help="scrambled Sobol numbers instead of pseudo-random")
    parser.add_argument("--antithetic", action="store_true", help="antithetic variates")
    parser.add_argument("--plot", action="store_true", help="plot the convergence of the estimate")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args=parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(name)s %(levelname)s: %(message)s")

    try:
        settings=SimulationSettings.from_env(seed=args.seed, steps=args.steps, samples=args.samples,
                                             sobol=args.sobol or None, antithetic=args.antithetic or None)
        kind=ModelKind.parse(args.model) if args.model else prompt_model()

        simulation=AutocallableSimulation(build_market(), build_contract(), settings)
        result=simulation.compute(model=kind)

        low, high=result.confidence_interval()
        print(f"\nQuotation: {settings.reference_price}")
        print(f"Price: {result.price:.4f} | Standard Error: {result.standard_error:.4f} "
              f"| 95% CI: [{low:.4f}, {high:.4f}]")
        print(f"Error: {100.0*result.relative_error(settings.reference_price):.3f} %")
        print(f"Run completed in {result.elapsed:.1f} s\n")

        if args.plot:
            history=simulation.convergence(model=kind)
            plot_convergence(history, settings.reference_price, kind)
    except Exception as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
