"""Per-site scrapers that extract today's anime updates and fetch cover images."""