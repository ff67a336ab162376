"""Pure astrological computation: geometry, aspects, hours, lunations, transits."""
