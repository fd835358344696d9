#!/usr/bin/env python3
"""
Test runner script for vmdriver
"""

import os
import sys
import subprocess
import argparse
from pathlib import Path


def run_command(cmd, description, env=None):
    """Run a command and return success status"""
    print(f"\n{'='*60}")
    print(f"Running: {description}")
    print(f"Command: {' '.join(cmd)}")
    print('='*60)

    result = subprocess.run(cmd, capture_output=False, env=env)
    if result.returncode != 0:
        print(f"❌ {description} failed with exit code {result.returncode}")
        return False
    print(f"✅ {description} passed")
    return True


def lab_environment(config_path):
    """Environment for the live tests, taken from a vmdriver YAML config"""
    from vmdriver.config import load_config

    connect_config, _ = load_config(config_path)
    env = dict(os.environ)
    env.update({
        'VSPHERE_SERVER': connect_config.server,
        'VSPHERE_USER': connect_config.username,
        'VSPHERE_PASSWORD': connect_config.password,
        'VSPHERE_INSECURE': 'true' if connect_config.insecure else 'false',
    })
    return env


def main():
    parser = argparse.ArgumentParser(description="Run vmdriver tests")
    parser.add_argument("--unit", action="store_true", help="Run unit tests only")
    parser.add_argument("--integration", action="store_true",
                        help="Run tests against a live vCenter (needs VSPHERE_* or --config)")
    parser.add_argument("--config", help="YAML file with a 'vsphere' section for the live tests")
    parser.add_argument("--coverage", action="store_true", help="Run with coverage reporting")
    parser.add_argument("--lint", action="store_true", help="Run linting checks")
    parser.add_argument("--all", action="store_true", help="Run all tests and checks")

    args = parser.parse_args()

    project_root = Path(__file__).parent
    sys.path.insert(0, str(project_root))

    success = True
    env = lab_environment(args.config) if args.config else None

    if args.lint or args.all:
        if not run_command(["flake8", "vmdriver"], "Flake8 linting"):
            success = False

    test_cmd = ["python", "-m", "pytest"]

    if args.coverage or args.all:
        test_cmd.extend([
            "--cov=vmdriver",
            "--cov-report=term-missing",
            "--cov-fail-under=80"
        ])

    if args.integration:
        if env is None and not os.environ.get("VSPHERE_SERVER"):
            print("⚠️  No lab endpoint configured; live tests will be skipped")
        test_cmd.append("tests/integration/")
    elif args.all:
        test_cmd.append("tests/")
    else:
        test_cmd.append("tests/unit/")

    if not (args.lint and not (args.unit or args.integration or args.all)):
        if not run_command(test_cmd, "Running tests", env=env):
            success = False

    print(f"\n{'='*60}")
    if success:
        print("🎉 All checks passed!")
        return 0
    print("❌ Some checks failed!")
    return 1


if __name__ == "__main__":
    sys.exit(main())
