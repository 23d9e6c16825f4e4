#!/usr/bin/env python3
"""
Test runner for all Issue Cycle Time Reporter tests
"""

import unittest
import sys
import os

# Add tests and project directories to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

TEST_MODULES = [
    ('test_lifecycle', 'Changelog normalization, milestones and rework flags'),
    ('test_utils_dates', 'Date parsing and business day durations'),
    ('test_filtering', 'Estimate and grouping filters, configuration'),
    ('test_cycle_time', 'Metrics rows, CSV output and batch processing'),
    ('test_sync_issues', 'Tracker search and changelog fetching'),
    ('test_report_generator', 'Summary report generation'),
]


def discover_and_run_tests():
    """Run every test module and print a summary"""
    print("🧪 Issue Cycle Time Reporter - Test Suite")
    print("=" * 50)
    print(f"\n📋 Running {len(TEST_MODULES)} test modules...\n")

    total_tests = 0
    total_failures = 0
    total_errors = 0

    for module_name, _ in TEST_MODULES:
        print(f"🔄 Running {module_name}...")

        try:
            test_module = __import__(module_name)
        except ImportError as e:
            print(f"   ⚠️  Could not import {module_name}: {e}\n")
            total_errors += 1
            continue

        suite = unittest.TestLoader().loadTestsFromModule(test_module)
        runner = unittest.TextTestRunner(verbosity=1, stream=sys.stdout, buffer=True)
        result = runner.run(suite)

        total_tests += result.testsRun
        total_failures += len(result.failures)
        total_errors += len(result.errors)

        if result.wasSuccessful():
            print(f"   ✅ {result.testsRun} tests passed\n")
        else:
            print(f"   ❌ {len(result.failures)} failures, {len(result.errors)} errors\n")

    print("=" * 50)
    print("📊 Test Summary:")
    print(f"   Total Tests: {total_tests}")
    print(f"   Passed: {total_tests - total_failures - total_errors}")
    print(f"   Failed: {total_failures}")
    print(f"   Errors: {total_errors}")

    if total_failures == 0 and total_errors == 0:
        print("\n🎉 All tests passed!")
        return 0
    print(f"\n💥 {total_failures + total_errors} tests failed")
    return 1


def run_specific_test(test_name):
    """Run a specific test module"""
    print(f"🧪 Running specific test: {test_name}")
    print("=" * 50)

    try:
        test_module = __import__(test_name)
    except ImportError as e:
        print(f"❌ Could not import test module '{test_name}': {e}")
        return 1

    suite = unittest.TestLoader().loadTestsFromModule(test_module)
    result = unittest.TextTestRunner(verbosity=2).run(suite)
    return 0 if result.wasSuccessful() else 1


def list_available_tests():
    """List all available test modules"""
    print("📋 Available test modules:")
    print("-" * 30)
    for module, description in TEST_MODULES:
        print(f"  {module:<30} - {description}")

    print("\nUsage:")
    print("  python run_all_tests.py              # Run all tests")
    print("  python run_all_tests.py <test_name>  # Run specific test")
    print("  python run_all_tests.py --list       # List available tests")


def main():
    """Main entry point"""
    if len(sys.argv) > 1:
        arg = sys.argv[1]
        if arg in ['--list', '-l', 'list']:
            list_available_tests()
            return 0
        if arg in ['--help', '-h', 'help']:
            print("Issue Cycle Time Reporter Test Runner")
            print("Usage: python run_all_tests.py [test_name|--list|--help]")
            return 0
        return run_specific_test(arg)
    return discover_and_run_tests()


if __name__ == '__main__':
    sys.exit(main())
