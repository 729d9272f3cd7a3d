from rest_framework import viewsets, status, views
from rest_framework.decorators import action
from rest_framework.response import Response
from .serializers import (ElectionSerializer, ElectionInputSerializer, CandidateSerializer, CandidateApplySerializer,
                          CandidateDecisionSerializer, AllowlistSerializer, VoteInputSerializer, TallyRowSerializer,
                          TurnoutSerializer)
from core.identity import Identity, ROLES, ROLE_ADMIN, ROLE_VOTER
from core.models import Candidate
from core.service import ElectionService


def identity_from_request(request) -> Identity:
    """Build the caller identity from the authenticated user and token claims."""
    role = None
    token = request.auth
    if token is not None and hasattr(token, "get"):
        role = token.get("role")
    if role not in ROLES:
        role = ROLE_ADMIN if request.user.is_staff else ROLE_VOTER
    return Identity(user_id=str(request.user.pk), email=request.user.email or "", role=role)


class ServiceMixin:
    service_class = ElectionService

    def get_service(self):
        if not hasattr(self, "_service"):
            self._service = self.service_class()
        return self._service

    def get_identity(self):
        return identity_from_request(self.request)

    def election_data(self, election):
        return ElectionSerializer(election, context={"service": self.get_service()}).data


class ElectionViewSet(ServiceMixin, viewsets.ViewSet):

    def list(self, request):
        elections = self.get_service().list_elections(self.get_identity(), request.query_params.get('phase'))
        return Response(ElectionSerializer(elections, many=True, context={"service": self.get_service()}).data)

    def create(self, request):
        serializer = ElectionInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        election_id = self.get_service().create_election(self.get_identity(), serializer.validated_data)
        election = self.get_service().get_election(self.get_identity(), election_id)
        return Response(self.election_data(election), status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        return Response(self.election_data(self.get_service().get_election(self.get_identity(), pk)))

    def partial_update(self, request, pk=None):
        serializer = ElectionInputSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        election = self.get_service().update_election(self.get_identity(), pk, serializer.validated_data)
        return Response(self.election_data(election))

    def destroy(self, request, pk=None):
        self.get_service().delete_election(self.get_identity(), pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        election = self.get_service().cancel_election(self.get_identity(), pk)
        return Response(self.election_data(election))

    @action(detail=True, methods=['get'])
    def tally(self, request, pk=None):
        rows = self.get_service().tally(self.get_identity(), pk)
        return Response(TallyRowSerializer(rows, many=True).data)

    @action(detail=True, methods=['get'])
    def turnout(self, request, pk=None):
        return Response(TurnoutSerializer(self.get_service().turnout(self.get_identity(), pk)).data)

    @action(detail=True, methods=['get'])
    def results(self, request, pk=None):
        rows = self.get_service().results(self.get_identity(), pk)
        return Response(TallyRowSerializer(rows, many=True).data)

    @action(detail=True, methods=['post', 'delete'])
    def allowlist(self, request, pk=None):
        serializer = AllowlistSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user_id, role = serializer.validated_data['user_id'], serializer.validated_data['role']
        if request.method == 'DELETE':
            changed = self.get_service().remove_from_allowlist(self.get_identity(), pk, user_id, role)
        else:
            changed = self.get_service().add_to_allowlist(self.get_identity(), pk, user_id, role)
        return Response({"changed": changed})

    @action(detail=True, methods=['post'])
    def apply(self, request, pk=None):
        serializer = CandidateApplySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        candidate_id = self.get_service().apply(self.get_identity(), pk, serializer.validated_data)
        return Response({"id": candidate_id, "status": Candidate.STATUS_PENDING}, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def vote(self, request, pk=None):
        serializer = VoteInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        vote_id = self.get_service().cast_vote(self.get_identity(), pk, serializer.validated_data['candidate_id'])
        return Response({"status": "ok", "vote": vote_id}, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get'])
    def candidates(self, request, pk=None):
        candidates = self.get_service().list_candidates(self.get_identity(), pk, request.query_params.get('status'))
        return Response(CandidateSerializer(candidates, many=True).data)


class CandidateViewSet(ServiceMixin, viewsets.ViewSet):

    @action(detail=False, methods=['get'])
    def mine(self, request):
        return Response(CandidateSerializer(self.get_service().my_applications(self.get_identity()), many=True).data)

    @action(detail=False, methods=['get'])
    def pending(self, request):
        candidates = self.get_service().pending_candidates(self.get_identity(), request.query_params.get('election'))
        return Response(CandidateSerializer(candidates, many=True).data)

    @action(detail=True, methods=['patch'])
    def decision(self, request, pk=None):
        serializer = CandidateDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        outcome = Candidate.STATUS_APPROVED if serializer.validated_data['action'] == 'approve' \
            else Candidate.STATUS_REJECTED
        candidate = self.get_service().decide_candidate(self.get_identity(), pk, outcome,
                                                        serializer.validated_data.get('reason', ''))
        return Response(CandidateSerializer(candidate).data)


class ReconcileAPIView(ServiceMixin, views.APIView):

    def post(self, request):
        return Response({"changed": self.get_service().reconcile(self.get_identity())})
