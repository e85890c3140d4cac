# GreenWave Dispatch - Source Package
"""
GreenWave Dispatch: emergency-vehicle mission simulator with green corridor
traffic preemption.

Modules:
    - mission: Mission state machine, events and data model
    - simulation: Position and traffic signal simulators
    - intelligence: Route and emergency analysis providers
    - comms: Snapshot publishing for presentation clients
    - utils: Helper utilities (geo math, transition table, log sink, config)
"""

__version__ = "1.0.0"
__author__ = "GreenWave Team"
