"""Load harness helpers shared by the Locust file and the CLI."""

from .phases import ArrivalPlan, describe_phases, plan_tick, total_arrivals, total_duration

__all__ = ["ArrivalPlan", "describe_phases", "plan_tick", "total_arrivals", "total_duration"]
