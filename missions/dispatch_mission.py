#!/usr/bin/env python3
"""
Dispatch Mission - Operator Console

Runs one emergency dispatch end to end from the command line:
1. Configure the emergency and start position
2. Initiate the emergency protocol (patient leg, green corridor)
3. Confirm transport at the patient (prompt or --auto-transport)
4. Drive to the hospital and wait for the mission to reset

Usage:
    python dispatch_mission.py [--config CONFIG_PATH] [--offline] [--auto-transport]
"""

import sys
import time
import logging
import argparse
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from greenwave.utils.config import load_config
from greenwave.utils.state_machine import MissionStatus
from greenwave.mission.controller import MissionController
from greenwave.mission.models import EMERGENCY_TYPES
from greenwave.intelligence.route_provider import DirectLineRouteProvider
from greenwave.comms.snapshot_publisher import SnapshotPublisher

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger('DispatchMission')


def wait_for_status(controller: MissionController, statuses, timeout: float) -> bool:
    """Poll until the mission reaches one of the statuses."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if controller.status in statuses:
            return True
        time.sleep(0.1)
    return False


def print_hud(controller: MissionController):
    snap = controller.snapshot()
    logger.info(f"HUD | {snap.status.value} | {snap.speed} km/h | "
                f"{snap.distance} | ETA {snap.eta} | {snap.traffic_state.value}")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="GreenWave Dispatch - Operator Console")
    parser.add_argument('--config', default='config/mission_params.yaml',
                        help='Path to mission configuration file')
    parser.add_argument('--offline', action='store_true',
                        help='Use direct-line routing instead of the OSRM server')
    parser.add_argument('--lat', type=str, default=None, help='Start latitude')
    parser.add_argument('--lng', type=str, default=None, help='Start longitude')
    parser.add_argument('--type', default='Cardiac Arrest', choices=EMERGENCY_TYPES,
                        help='Emergency type')
    parser.add_argument('--severity', default='Critical', help='Low, Medium or Critical')
    parser.add_argument('--description', default='Male, 55, chest pains, collapsed.',
                        help='Emergency description')
    parser.add_argument('--auto-transport', action='store_true',
                        help='Confirm transport without prompting')
    parser.add_argument('--timeout', type=float, default=600.0,
                        help='Maximum seconds per leg')

    args = parser.parse_args()

    # Resolve config path
    script_dir = Path(__file__).parent.parent
    config_path = Path(args.config)
    if not config_path.is_absolute():
        config_path = script_dir / config_path

    logger.info("=" * 60)
    logger.info("GREENWAVE DISPATCH - Emergency Protocol")
    logger.info("=" * 60)

    config = load_config(config_path)
    route_provider = DirectLineRouteProvider(config.get('routing', {})) if args.offline else None
    controller = MissionController(config, route_provider=route_provider)

    publisher = None
    if config.get('telemetry', {}).get('enabled', False):
        publisher = SnapshotPublisher(config['telemetry'])
        if publisher.start():
            controller.add_listener(publisher.publish_snapshot)
            controller.log.add_listener(publisher.publish_log)
        else:
            publisher = None

    controller.start()

    try:
        controller.authenticate()
        controller.configure_emergency(args.type, args.severity, args.description)
        if args.lat is not None and args.lng is not None:
            controller.set_location(args.lat, args.lng)

        if not controller.start_mission():
            logger.error("Mission could not be started")
            sys.exit(1)

        legs = (
            (MissionStatus.AT_PATIENT, "patient"),
            (MissionStatus.COMPLETED, "hospital"),
        )
        for target_status, name in legs:
            deadline = time.time() + args.timeout
            while time.time() < deadline and controller.status != target_status:
                print_hud(controller)
                if controller.status == MissionStatus.IDLE:
                    logger.error("Mission returned to IDLE unexpectedly")
                    sys.exit(1)
                time.sleep(1.0)

            if controller.status != target_status:
                logger.error(f"Timed out on the {name} leg")
                controller.abort_mission()
                sys.exit(1)

            if target_status == MissionStatus.AT_PATIENT:
                if not args.auto_transport:
                    input("PATIENT SECURED - press Enter to BEGIN TRANSPORT ")
                controller.begin_transport()

        wait_for_status(controller, (MissionStatus.IDLE,), timeout=30.0)
        logger.info("Mission completed")

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        controller.abort_mission()
    finally:
        controller.shutdown()
        if publisher:
            publisher.stop()

        print()
        print("=" * 60)
        print("MISSION LOG")
        print("=" * 60)
        for entry in controller.logs():
            print(f"[{entry.time_label}] {entry.kind.value.upper():8s} {entry.message}")


if __name__ == "__main__":
    main()
