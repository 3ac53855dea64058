"""
Scan Report
Structured summary handed to the notification sink, plus the JSON report file
"""

from pathlib import Path

from .models import TAG_UNEXPECTED_DROPIN_REVIEW, TAG_UNEXPECTED_DROPIN_RISK
from .theme_file_filter import ThemeFileFilter
from .utils import save_json

UNEXPECTED_DROPIN_TAGS = (TAG_UNEXPECTED_DROPIN_REVIEW, TAG_UNEXPECTED_DROPIN_RISK)


def summarize(result, root=None):
    """
    Build the notification summary for a scan result

    Args:
        result (ScanResult): Completed scan
        root (str): Installation root; when given, changed theme files are
            annotated with their theme's style.css metadata

    Returns:
        dict: counts, per-category display paths, theme annotations and
            verification details
    """
    verification = result.verification
    summary = {
        'timestamp': result.timestamp,
        'has_issues': result.has_issues(),
        'counts': result.counts(),
        'wordpress_version': result.manifest_version,
        'locale': result.manifest_locale,
        'manifest_error': result.manifest_error,
        'modified_files': [f.display() for f in result.modified],
        'missing_files': [f.display() for f in result.missing],
        'unknown_files': [f.display() for f in result.unknown],
        'suspicious_files': [
            {'path': f.display(), 'reason': f.reason} for f in result.suspicious
        ],
        'unexpected_dropins': sorted({
            f.path for f in result.unknown + result.suspicious if f.risk_tag in UNEXPECTED_DROPIN_TAGS
        }),
        'verification': None,
    }

    theme_filter = ThemeFileFilter()
    changed = [f.path for f in result.modified + result.missing]
    summary['critical_theme_files'] = [
        p for p in changed if theme_filter.is_theme_file(p) and theme_filter.is_critical_theme_file(p)
    ]
    summary['themes'] = {}
    if root is not None:
        for path in changed:
            info = theme_filter.get_theme_info(path, root)
            if info is not None:
                summary['themes'].setdefault(info['slug'], info)

    if verification is not None:
        summary['verification'] = {
            'verified': [v.path for v in verification.verified],
            'modified': [
                {'path': v.path, 'plugin': v.package_slug, 'reference_url': v.reference_url}
                for v in verification.modified
            ],
            'not_hosted': [{'plugin': p.slug, 'name': p.name} for p in verification.not_hosted],
            'errors': [{'path': e.path, 'message': e.message} for e in verification.errors],
        }

    return summary


def save_report(result, output_path, root=None):
    """Write the full result plus its summary as a JSON report"""
    output_path = Path(output_path)
    save_json({'summary': summarize(result, root), 'result': result.to_dict()}, output_path)
    print(f"[+] JSON report saved: {output_path}")
    return output_path
