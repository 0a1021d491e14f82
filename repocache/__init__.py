APP_NAME = "repocache"
