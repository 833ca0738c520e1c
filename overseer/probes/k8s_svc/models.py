"""Pydantic models for Kubernetes API responses and kubeconfig files."""

from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict, Field


class EndpointAddress(BaseModel):
    """A ready address backing a service."""

    ip: str


class EndpointSubset(BaseModel):
    """A group of addresses sharing the same ports."""

    addresses: Sequence[EndpointAddress] = Field(default_factory=list)


class Endpoints(BaseModel):
    """Response from the read endpoints API."""

    subsets: Sequence[EndpointSubset] = Field(default_factory=list)

    @property
    def ready_count(self) -> int:
        return sum(len(subset.addresses) for subset in self.subsets)


class KubeconfigModel(BaseModel):
    """Base for kubeconfig entries, whose keys are hyphenated."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Cluster(KubeconfigModel):
    server: str
    certificate_authority: str | None = Field(None, alias="certificate-authority")
    certificate_authority_data: str | None = Field(
        None, alias="certificate-authority-data"
    )
    insecure_skip_tls_verify: bool = Field(False, alias="insecure-skip-tls-verify")


class NamedCluster(KubeconfigModel):
    name: str
    cluster: Cluster


class User(KubeconfigModel):
    token: str | None = None
    token_file: str | None = Field(None, alias="tokenFile")


class NamedUser(KubeconfigModel):
    name: str
    user: User = Field(default_factory=User)


class Context(KubeconfigModel):
    cluster: str
    user: str | None = None


class NamedContext(KubeconfigModel):
    name: str
    context: Context


class Kubeconfig(KubeconfigModel):
    """The parts of a kubeconfig file needed to reach the API with a token."""

    clusters: Sequence[NamedCluster] = Field(default_factory=list)
    users: Sequence[NamedUser] = Field(default_factory=list)
    contexts: Sequence[NamedContext] = Field(default_factory=list)
    current_context: str = Field("", alias="current-context")

    def current(self) -> tuple[Cluster, User]:
        """Return the cluster and user selected by current-context.

        Raises:
            LookupError: If the context, its cluster or its user is not defined

        """
        contexts = {entry.name: entry.context for entry in self.contexts}
        if self.current_context not in contexts:
            raise LookupError(f"context {self.current_context!r} is not defined")
        context = contexts[self.current_context]

        clusters = {entry.name: entry.cluster for entry in self.clusters}
        if context.cluster not in clusters:
            raise LookupError(f"cluster {context.cluster!r} is not defined")

        if context.user is None:
            return clusters[context.cluster], User()
        users = {entry.name: entry.user for entry in self.users}
        if context.user not in users:
            raise LookupError(f"user {context.user!r} is not defined")
        return clusters[context.cluster], users[context.user]
