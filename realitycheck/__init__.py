"""RealityCheck: device usage statistics, classification and background sync."""
