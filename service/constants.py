APP_NAME = "image-similarity-scorer"
APP_TITLE = "Image Similarity Scorer"
PATH_PREFIX = "/scorer"
