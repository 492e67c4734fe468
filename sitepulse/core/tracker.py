"""Embeddable tracker script and install snippet."""

import json

_SCRIPT = """(function () {
  'use strict';
  var siteId = __SITE_ID__;
  var endpoint = __ENDPOINT__;
  if (!siteId) {
    console.warn('SitePulse: missing siteId');
    return;
  }

  function sessionId() {
    var id = sessionStorage.getItem('wm_session');
    if (!id) {
      id = 'sess_' + Math.random().toString(36).slice(2, 11) + Date.now().toString(36);
      sessionStorage.setItem('wm_session', id);
    }
    return id;
  }

  function track(eventType, data) {
    var payload = JSON.stringify({
      siteId: siteId,
      sessionId: sessionId(),
      eventType: eventType,
      url: window.location.href,
      referrer: document.referrer,
      data: data || {}
    });
    if (navigator.sendBeacon) {
      navigator.sendBeacon(endpoint, payload);
    } else {
      var xhr = new XMLHttpRequest();
      xhr.open('POST', endpoint, true);
      xhr.setRequestHeader('Content-Type', 'application/json');
      xhr.send(payload);
    }
  }

  function trackPageView() {
    track('pageview', {
      title: document.title,
      path: window.location.pathname,
      screenWidth: window.screen.width,
      screenHeight: window.screen.height,
      language: navigator.language
    });
  }

  var sessionStart = Date.now();
  window.addEventListener('beforeunload', function () {
    track('session_end', { duration: Date.now() - sessionStart });
  });

  if (document.readyState === 'complete') {
    trackPageView();
  } else {
    window.addEventListener('load', trackPageView);
  }

  var pushState = history.pushState;
  history.pushState = function () {
    pushState.apply(history, arguments);
    trackPageView();
  };
  window.addEventListener('popstate', trackPageView);

  window.wm = track;
})();
"""


def tracking_endpoint(base_url: str, api_prefix: str) -> str:
    return f"{base_url.rstrip('/')}{api_prefix}/tracking/event"


def render_tracker_script(tracking_id: str, endpoint: str) -> str:
    """Return the tracker JavaScript bound to one site.

    Both values are emitted as JSON string literals so a crafted ``siteId``
    query parameter cannot break out of the script.
    """
    return _SCRIPT.replace("__SITE_ID__", json.dumps(tracking_id)).replace(
        "__ENDPOINT__", json.dumps(endpoint)
    )


def render_snippet(tracking_id: str, base_url: str) -> str:
    """HTML snippet a site owner pastes before ``</head>``."""
    return (
        "<!-- SitePulse Tracking Code -->\n"
        f'<script src="{base_url.rstrip("/")}/tracker.js?siteId={tracking_id}" async></script>'
    )
