"""
Simulation Module for GreenWave Dispatch

Provides the simulated vehicle movement and intersection signals that
feed the mission controller.
"""

from greenwave.simulation.position_simulator import PositionSimulator
from greenwave.simulation.traffic_signals import TrafficSignalSimulator

__all__ = [
    'PositionSimulator',
    'TrafficSignalSimulator'
]
