import boto3

from . import config


def _kw():
    k = {"region_name": config.aws_region()}
    endpoint = config.aws_endpoint_url()
    if endpoint:
        k["endpoint_url"] = endpoint
    return k


def dynamodb_resource():
    return boto3.resource("dynamodb", **_kw())


def secretsmanager_client():
    return boto3.client("secretsmanager", **_kw())
