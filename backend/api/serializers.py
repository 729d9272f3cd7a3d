from rest_framework import serializers
from core.models import Election, Candidate, AllowlistEntry


class ElectionSerializer(serializers.ModelSerializer):
    phase = serializers.SerializerMethodField()

    class Meta:
        model = Election
        fields = ['id', 'title', 'description', 'start_time', 'end_time', 'positions', 'phase',
                  'max_candidates', 'max_voters', 'allowed_email_keyword', 'owner_id', 'cancelled',
                  'created_at', 'updated_at']

    def get_phase(self, obj):
        # Resolved now; the stored column is only a reconciliation cache.
        return self.context['service'].elections.current_phase(obj)


class ElectionInputSerializer(serializers.Serializer):
    title = serializers.CharField()
    description = serializers.CharField()
    start_time = serializers.DateTimeField()
    end_time = serializers.DateTimeField()
    positions = serializers.ListField(child=serializers.CharField(), allow_empty=False)
    max_candidates = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    max_voters = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    allowed_email_keyword = serializers.CharField(required=False, allow_blank=True)
    voter_allowlist = serializers.ListField(child=serializers.CharField(), required=False)
    candidate_allowlist = serializers.ListField(child=serializers.CharField(), required=False)


class CandidateSerializer(serializers.ModelSerializer):
    class Meta:
        model = Candidate
        fields = ['id', 'election', 'user_id', 'position', 'name', 'age', 'phone', 'bio', 'manifesto',
                  'image_url', 'document_urls', 'status', 'rejection_reason', 'vote_count', 'created_at',
                  'decision_at']


class CandidateApplySerializer(serializers.Serializer):
    name = serializers.CharField()
    position = serializers.CharField()
    age = serializers.IntegerField(required=False, allow_null=True)
    phone = serializers.CharField(required=False, allow_blank=True)
    bio = serializers.CharField(required=False, allow_blank=True)
    manifesto = serializers.CharField(required=False, allow_blank=True)
    image_url = serializers.CharField(required=False, allow_blank=True)
    document_urls = serializers.ListField(child=serializers.CharField(), required=False)


class CandidateDecisionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['approve', 'reject'])
    reason = serializers.CharField(required=False, allow_blank=True)


class AllowlistSerializer(serializers.Serializer):
    user_id = serializers.CharField()
    role = serializers.ChoiceField(choices=[value for value, _ in AllowlistEntry.ROLE_CHOICES])


class VoteInputSerializer(serializers.Serializer):
    candidate_id = serializers.CharField()


class TallyRowSerializer(serializers.Serializer):
    candidate_id = serializers.CharField()
    name = serializers.CharField()
    position = serializers.CharField()
    votes = serializers.IntegerField()
    percentage = serializers.FloatField()


class TurnoutSerializer(serializers.Serializer):
    total_voters = serializers.IntegerField()
    total_votes = serializers.IntegerField()
    pending = serializers.IntegerField()
