"""
Detection of analytics and tag-manager installations from page scripts
"""

import re
from typing import Iterable, List, NamedTuple

from .models import AnalyticsData, FacebookPixel, GoogleAnalytics4, GoogleTagManager


GA4_ID = re.compile(r'(?<![A-Za-z0-9-])G-[A-Z0-9]{4,12}(?![A-Za-z0-9])')
GTAG_CONFIG = re.compile(r'''gtag\(\s*['"]config['"]\s*,\s*['"]([^'"]+)['"]''')
GTM_ID = re.compile(r'GTM-[A-Z0-9]+')
FB_PIXEL_INIT = re.compile(r'''fbq\(\s*['"]init['"]\s*,\s*['"]?(\d{6,})''')
QUOTED_NUMBER = re.compile(r'''['"](\d{6,})['"]''')

ANALYTICS_SRC_MARKERS = ('analytics', 'google-analytics', 'mixpanel', 'segment', 'amplitude')
TRACKING_SRC_MARKERS = ('analytics', 'tracking')


class ScriptTag(NamedTuple):
    src: str
    text: str


def _unique(items: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(items))


def _is_ga4_script(script: ScriptTag) -> bool:
    return (
        'gtag' in script.text
        or 'GA_MEASUREMENT_ID' in script.text
        or 'googletagmanager.com' in script.src
    )


def _is_gtm_script(script: ScriptTag) -> bool:
    return 'googletagmanager.com/gtm.js' in script.src or 'GTM-' in script.text


def _is_fb_pixel_script(script: ScriptTag) -> bool:
    return 'fbq' in script.text or 'facebook.net' in script.src


def detect_analytics(scripts: Iterable[ScriptTag]) -> AnalyticsData:
    scripts = list(scripts)

    ga4_scripts = [s for s in scripts if _is_ga4_script(s)]
    ga4_ids = []
    ga4_config = {}
    for script in ga4_scripts:
        ga4_ids.extend(GA4_ID.findall(script.text))
        ga4_ids.extend(GA4_ID.findall(script.src))
        config_match = GTAG_CONFIG.search(script.text)
        if config_match:
            ga4_config['measurementId'] = config_match.group(1)

    gtm_scripts = [s for s in scripts if _is_gtm_script(s)]
    gtm_ids = []
    for script in gtm_scripts:
        gtm_ids.extend(GTM_ID.findall(script.src))
        gtm_ids.extend(GTM_ID.findall(script.text))

    pixel_id = None
    fb_scripts = [s for s in scripts if _is_fb_pixel_script(s)]
    for script in fb_scripts:
        match = FB_PIXEL_INIT.search(script.text) or QUOTED_NUMBER.search(script.text)
        if match:
            pixel_id = match.group(1)
            break

    sources = [s.src for s in scripts if s.src]
    return AnalyticsData(
        google_analytics4=GoogleAnalytics4(
            measurement_ids=_unique(ga4_ids),
            config=ga4_config,
            scripts_found=len(ga4_scripts),
        ),
        google_tag_manager=GoogleTagManager(
            container_ids=_unique(gtm_ids),
            scripts_found=len(gtm_scripts),
        ),
        facebook_pixel=FacebookPixel(pixel_id=pixel_id, found=bool(fb_scripts)),
        other_analytics=[src for src in sources if any(m in src for m in ANALYTICS_SRC_MARKERS)],
        all_analytics_scripts=[src for src in sources if any(m in src for m in TRACKING_SRC_MARKERS)],
    )
