"""
Command-line entry point: wp-integrity-check
"""

import argparse
import sys

from colorama import Fore, Style, init as colorama_init

from .errors import IntegrityCheckError, ScanCancelledError
from .config import load_config
from .progress import ProgressTracker, TqdmProgressListener
from .report import save_report, UNEXPECTED_DROPIN_TAGS
from .scanner import IntegrityScanner
from .store import open_store

EXIT_CLEAN = 0
EXIT_ISSUES = 1
EXIT_CRITICAL = 2
EXIT_NO_MANIFEST = 3
EXIT_FAILED = 4


def parse_cli_args(argv=None):
    parser = argparse.ArgumentParser(
        prog='wp-integrity-check',
        description='WordPress file integrity checker: core checksums, unknown and suspicious files',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Check the installation in the current directory
  wp-integrity-check

  # Check a site and confirm suspicious plugin files upstream
  wp-integrity-check /var/www/html --verify --json report.json

Exit codes:
  0 no issues, 1 issues found, 2 confirmed plugin modifications or
  unexpected drop-ins, 3 checksums unavailable, 4 cancelled or failed
        """
    )
    parser.add_argument('root', nargs='?', default=None,
                        help='WordPress installation root (default: config / current directory)')
    parser.add_argument('--config', default=None, help='JSON config file (default: ./config.json if present)')

    verify = parser.add_mutually_exclusive_group()
    verify.add_argument('--verify', dest='verify', action='store_true', default=None,
                        help='Verify suspicious plugin files against plugins.svn.wordpress.org')
    verify.add_argument('--no-verify', dest='verify', action='store_false',
                        help='Skip upstream verification')

    parser.add_argument('--wp-version', default=None, help='Installed WordPress version (default: detected)')
    parser.add_argument('--locale', default=None, help='Installed locale (default: detected, else en_US)')
    parser.add_argument('--store', default=None, help='JSON file for progress and stored results')
    parser.add_argument('--json', dest='json_report', default=None, help='Write a JSON report to this file')
    parser.add_argument('--quiet', action='store_true', help='No progress bar')
    return parser.parse_args(argv)


def exit_code_for(result):
    """Map a scan result to the process exit code"""
    verification = result.verification
    if verification is not None and verification.modified:
        return EXIT_CRITICAL
    if any(f.risk_tag in UNEXPECTED_DROPIN_TAGS for f in result.unknown + result.suspicious):
        return EXIT_CRITICAL
    if result.has_issues():
        return EXIT_ISSUES
    if result.manifest_error:
        return EXIT_NO_MANIFEST
    return EXIT_CLEAN


def print_verdict(result):
    counts = result.counts()
    print(f"\n{'=' * 80}")
    print("SUMMARY")
    print(f"   • Modified core files:  {counts['modified']}")
    print(f"   • Missing core files:   {counts['missing']}")
    print(f"   • Unknown files:        {counts['unknown']}")
    print(f"   • Suspicious files:     {counts['suspicious']}")
    if result.verification is not None:
        print(f"   • Verified upstream:    {counts['verified_upstream']}")
        print(f"   • Modified upstream:    {counts['modified_upstream']}")
        print(f"   • Not hosted upstream:  {counts['not_hosted']}")
        print(f"   • Verification errors:  {counts['verification_errors']}")

    code = exit_code_for(result)
    if code == EXIT_CRITICAL:
        print(f"{Fore.RED}{Style.BRIGHT}VERDICT: CRITICAL - INVESTIGATE IMMEDIATELY{Style.RESET_ALL}")
        for v in (result.verification.modified if result.verification else []):
            print(f"   └─ {v.path} differs from {v.reference_url}")
        for f in result.unknown + result.suspicious:
            if f.risk_tag in UNEXPECTED_DROPIN_TAGS:
                print(f"   └─ {f.display()}")
    elif code == EXIT_ISSUES:
        print(f"{Fore.YELLOW}VERDICT: ISSUES FOUND - REVIEW THE FILES LISTED ABOVE{Style.RESET_ALL}")
    elif code == EXIT_NO_MANIFEST:
        print(f"{Fore.YELLOW}VERDICT: INCOMPLETE - CORE CHECKSUMS UNAVAILABLE{Style.RESET_ALL}")
        print(f"   └─ {result.manifest_error}")
    else:
        print(f"{Fore.GREEN}VERDICT: NO INTEGRITY ISSUES FOUND{Style.RESET_ALL}")
    print(f"{'=' * 80}\n")
    return code


def main(argv=None):
    """CLI entry point"""
    args = parse_cli_args(argv)
    colorama_init()

    try:
        config = load_config(
            args.config,
            root=args.root,
            version=args.wp_version,
            locale=args.locale,
            store_path=args.store,
            verify_with_upstream=args.verify,
        )
    except IntegrityCheckError as e:
        print(f"[[X]] {e}")
        sys.exit(EXIT_FAILED)

    store = open_store(config.store_path)
    listener = TqdmProgressListener(disable=args.quiet)
    progress = ProgressTracker(store, ttl=config.progress_ttl, listener=listener)

    try:
        scanner = IntegrityScanner(config, store=store, progress=progress)
        result = scanner.perform_scheduled_check()
    except (ScanCancelledError, KeyboardInterrupt):
        listener.close()
        print("\n[[X]] Scan cancelled")
        sys.exit(EXIT_FAILED)
    except IntegrityCheckError as e:
        listener.close()
        print(f"\n[[X]] Scan failed: {e}")
        sys.exit(EXIT_FAILED)
    listener.close()

    if args.json_report:
        save_report(result, args.json_report, config.root)

    sys.exit(print_verdict(result))


if __name__ == "__main__":
    main()
